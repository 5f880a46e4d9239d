from __future__ import annotations

"""
Append-only storage of completed assessments.

Design intent:
- Treat storage and identity as opaque collaborators behind small protocols.
- A failed write is reported as a warning; the computed result is never discarded.
- Every completed assessment becomes a new record; nothing is updated in place.
"""

import datetime as _dt
import logging
import uuid
from dataclasses import dataclass
from threading import RLock
from typing import Any, Mapping, Optional, Protocol

from pydantic import ValidationError as RecordValidationError

from healthrisk.internal_core.contracts import AssessmentRecord, StoredAssessment
from healthrisk.internal_core.errors import PersistenceError
from healthrisk.risk.factors import FactorSet
from healthrisk.risk.pipeline import AssessmentResult, RiskModule, compute_assessment

logger = logging.getLogger(__name__)


class AssessmentRepository(Protocol):
    def save(self, record: AssessmentRecord) -> str: ...


class IdentityProvider(Protocol):
    def current_user_id(self) -> Optional[str]: ...


class StaticIdentityProvider:
    def __init__(self, user_id: Optional[str]):
        self._user_id = (user_id or "").strip() or None

    def current_user_id(self) -> Optional[str]:
        return self._user_id


class InMemoryAssessmentRepository:
    def __init__(self) -> None:
        self._lock = RLock()
        self._records: list[StoredAssessment] = []

    def save(self, record: AssessmentRecord) -> str:
        record_id = uuid.uuid4().hex
        stored = StoredAssessment(record_id=record_id, **record.model_dump())
        with self._lock:
            self._records.append(stored)
        return record_id

    def history(self, user_id: str, module_type: Optional[str] = None) -> list[StoredAssessment]:
        with self._lock:
            records = [
                item
                for item in self._records
                if item.user_id == user_id and (module_type is None or item.module_type == module_type)
            ]
        return list(reversed(records))

    def latest(self, user_id: str, module_type: str) -> Optional[StoredAssessment]:
        records = self.history(user_id, module_type)
        return records[0] if records else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


@dataclass(frozen=True)
class PersistOutcome:
    record_id: Optional[str] = None
    warning: Optional[str] = None
    code: Optional[str] = None

    @property
    def saved(self) -> bool:
        return self.record_id is not None


@dataclass(frozen=True)
class AssessmentRun:
    result: AssessmentResult
    factors: FactorSet
    persist: Optional[PersistOutcome] = None


def _ts_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat()


def build_assessment_record(
    user_id: str,
    factors: FactorSet,
    result: AssessmentResult,
    *,
    created_at: Optional[str] = None,
) -> AssessmentRecord:
    try:
        return AssessmentRecord(
            user_id=user_id,
            module_type=result.module_type,
            assessment_data=factors.snapshot(),
            results_data=result.snapshot(),
            risk_percentage=result.risk_percentage,
            risk_level=result.risk_level,
            recommendations=list(result.recommendations),
            created_at=created_at or _ts_iso(),
        )
    except RecordValidationError as exc:
        raise PersistenceError("record_invalid", f"Assessment record failed validation: {exc}") from exc


def persist_assessment(
    repository: AssessmentRepository,
    identity: Optional[IdentityProvider],
    factors: FactorSet,
    result: AssessmentResult,
) -> PersistOutcome:
    try:
        user_id = identity.current_user_id() if identity is not None else None
        if not user_id:
            raise PersistenceError("identity_missing", "No user identity available; the result was not saved.")
        record = build_assessment_record(user_id, factors, result)
        record_id = repository.save(record)
    except PersistenceError as exc:
        logger.warning(
            "persist_failed module=%s code=%s detail=%s",
            result.module_type,
            exc.code,
            exc.message,
        )
        return PersistOutcome(warning=exc.message, code=exc.code)

    logger.info("persist_ok module=%s record_id=%s", result.module_type, record_id)
    return PersistOutcome(record_id=record_id)


def run_assessment(
    module: RiskModule,
    raw_input: Optional[Mapping[str, Any]],
    repository: Optional[AssessmentRepository] = None,
    identity: Optional[IdentityProvider] = None,
) -> AssessmentRun:
    """Extract, compute and (when a repository is given) persist one assessment."""
    factors = module.extract(raw_input)
    result = compute_assessment(module, factors)
    persist = None
    if repository is not None:
        persist = persist_assessment(repository, identity, factors, result)
    return AssessmentRun(result=result, factors=factors, persist=persist)
