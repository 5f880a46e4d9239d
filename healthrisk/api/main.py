from __future__ import annotations

"""
HTTP surface for the healthrisk assessment core.

Design intent:
- Keep API orchestration thin and typed.
- Delegate scoring, readiness and disclosure to their domain modules.
- Report persistence problems as warnings next to the computed result.
"""

import logging
from typing import Any, Literal, Optional

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from healthrisk.disclosure import AdvanceOutcome, DisclosureOrchestrator, ReadinessNotMet
from healthrisk.internal_core.audit import log_event
from healthrisk.internal_core.config import RiskConfig, load_config
from healthrisk.internal_core.contracts import StoredAssessment
from healthrisk.internal_core.errors import ComputationInvariantViolation, ValidationError
from healthrisk.internal_core.session_store import InMemorySessionStore
from healthrisk.internal_core.timing import AsyncioSleeper, Clock, MonotonicClock, Sleeper
from healthrisk.modules import get_module, list_modules
from healthrisk.persistence import (
    InMemoryAssessmentRepository,
    PersistOutcome,
    StaticIdentityProvider,
    persist_assessment,
    run_assessment,
)
from healthrisk.readiness import (
    AnxietyQuestionnaire,
    AnxietySubmitted,
    ReadinessPolicy,
    ReadinessState,
    RelaxationCompleted,
    StyleChosen,
    SupportChecked,
    initial_readiness_state,
    is_ready,
    perform_relaxation,
    reduce_readiness,
)
from healthrisk.readiness.assessor import ReadinessEvent, state_snapshot
from healthrisk.risk.pipeline import compute_assessment


class FieldInfo(BaseModel):
    name: str
    kind: str
    required: bool
    minimum: float | None = None
    maximum: float | None = None
    choices: list[str] = Field(default_factory=list)


class ModuleInfo(BaseModel):
    module_type: str
    title: str
    score_label: str
    score_unit: str
    method_summary: str
    risk_levels: list[str]
    fields: list[FieldInfo]


class ModulesResponse(BaseModel):
    modules: list[ModuleInfo]


class AssessmentRequest(BaseModel):
    readiness_session_id: str = Field(min_length=1, max_length=128)
    input: dict[str, Any] = Field(default_factory=dict)


class PersistInfo(BaseModel):
    saved: bool
    record_id: str | None = None
    warning: str | None = None
    code: str | None = None


class AssessmentResponse(BaseModel):
    module_type: str
    result: dict[str, Any]
    persistence: PersistInfo | None = None


class HistoryResponse(BaseModel):
    user_id: str
    items: list[StoredAssessment]


class ReadinessEventRequest(BaseModel):
    type: Literal["anxiety_submitted", "style_chosen", "relaxation_completed", "support_checked"]
    questionnaire: dict[str, Any] | None = None
    style: str | None = None
    support_person_available: bool = False
    checklist: list[str] = Field(default_factory=list)


class ReadinessSessionResponse(BaseModel):
    session_id: str
    state: dict[str, Any]


class DisclosureCreateRequest(BaseModel):
    readiness_session_id: str = Field(min_length=1, max_length=128)
    module_type: str = Field(min_length=1)
    input: dict[str, Any] = Field(default_factory=dict)


class DisclosureSessionResponse(BaseModel):
    session_id: str
    module_type: str
    phase: str
    stage: int


class DisclosureAdvanceResponse(BaseModel):
    session_id: str
    phase: str
    stage: int
    payload: dict[str, Any] | None = None
    not_ready: dict[str, Any] | None = None
    wait_seconds: float = 0.0
    persistence: PersistInfo | None = None


app = FastAPI(title="healthrisk assessment service")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_config() -> RiskConfig:
    existing = getattr(app.state, "risk_config", None)
    if isinstance(existing, RiskConfig):
        return existing
    created = load_config()
    level = getattr(logging, created.HEALTHRISK_LOG_LEVEL.strip().upper(), None)
    if isinstance(level, int):
        logging.getLogger("healthrisk").setLevel(level)
    setattr(app.state, "risk_config", created)
    return created


def _get_session_store() -> InMemorySessionStore:
    existing = getattr(app.state, "session_store", None)
    if isinstance(existing, InMemorySessionStore):
        return existing
    created = InMemorySessionStore(ttl_seconds=_get_config().HEALTHRISK_SESSION_TTL_SECONDS)
    setattr(app.state, "session_store", created)
    return created


def _get_repository() -> Any:
    existing = getattr(app.state, "assessment_repository", None)
    if existing is not None:
        return existing
    created = InMemoryAssessmentRepository()
    setattr(app.state, "assessment_repository", created)
    return created


def _get_clock() -> Clock:
    existing = getattr(app.state, "disclosure_clock", None)
    if existing is not None:
        return existing
    created = MonotonicClock()
    setattr(app.state, "disclosure_clock", created)
    return created


def _get_sleeper() -> Sleeper:
    existing = getattr(app.state, "relaxation_sleeper", None)
    if existing is not None:
        return existing
    created = AsyncioSleeper()
    setattr(app.state, "relaxation_sleeper", created)
    return created


def _get_policy() -> ReadinessPolicy:
    return ReadinessPolicy.from_config(_get_config())


def _resolve_identity(header_user_id: str | None) -> StaticIdentityProvider:
    return StaticIdentityProvider(header_user_id or _get_config().HEALTHRISK_DEFAULT_USER_ID)


def _persist_info(outcome: PersistOutcome | None) -> PersistInfo | None:
    if outcome is None:
        return None
    return PersistInfo(saved=outcome.saved, record_id=outcome.record_id, warning=outcome.warning, code=outcome.code)


def _module_or_404(module_type: str):
    try:
        return get_module(module_type)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown module_type: {module_type}") from exc


def _validation_detail(exc: ValidationError) -> dict[str, str]:
    return {"field": exc.field, "bound": exc.bound, "message": exc.message}


def _session_or_404(store: InMemorySessionStore, session_id: str, kind: Literal["readiness", "disclosure"]) -> dict[str, Any]:
    store.cleanup_expired_sessions()
    try:
        return store.get_session(session_id, kind)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown {kind} session: {session_id}") from exc


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/assessments/modules", response_model=ModulesResponse)
async def assessment_modules() -> ModulesResponse:
    return ModulesResponse(
        modules=[
            ModuleInfo(
                module_type=module.module_type,
                title=module.title,
                score_label=module.score_label,
                score_unit=module.score_unit,
                method_summary=module.method_summary,
                risk_levels=list(module.bands.labels),
                fields=[
                    FieldInfo(
                        name=spec.name,
                        kind=spec.kind,
                        required=spec.required,
                        minimum=spec.minimum,
                        maximum=spec.maximum,
                        choices=list(spec.choices),
                    )
                    for spec in module.fields
                ],
            )
            for module in list_modules()
        ]
    )


@app.post("/assessments/{module_type}", response_model=AssessmentResponse)
async def run_module_assessment(
    module_type: str,
    payload: AssessmentRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> AssessmentResponse:
    module = _module_or_404(module_type)
    store = _get_session_store()
    readiness_session_id = payload.readiness_session_id
    readiness: ReadinessState = _session_or_404(store, readiness_session_id, "readiness")["state"]
    policy = _get_policy()
    if not is_ready(readiness, policy):
        not_met = ReadinessNotMet.from_state(readiness, policy)
        log_event(
            store,
            readiness_session_id,
            "ASSESSMENT_BLOCKED",
            not_met.required_action or "not_ready",
            f"module={module.module_type} score={not_met.readiness_score:.1f}",
        )
        raise HTTPException(status_code=409, detail={"not_ready": not_met.snapshot()})

    config = _get_config()
    repository = _get_repository() if config.HEALTHRISK_PERSISTENCE_ENABLED else None
    try:
        run = run_assessment(module, payload.input, repository, _resolve_identity(x_user_id))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc
    except ComputationInvariantViolation as exc:
        logger.error("assessment_invariant_violation module=%s code=%s", module_type, exc.code)
        raise HTTPException(status_code=500, detail=f"{exc.code}: {exc.message}") from exc

    log_event(
        store,
        readiness_session_id,
        "ASSESSMENT_COMPLETED",
        module.module_type,
        f"module={module.module_type} level={run.result.risk_level}",
    )
    return AssessmentResponse(
        module_type=module.module_type,
        result=run.result.snapshot(),
        persistence=_persist_info(run.persist),
    )


@app.get("/assessments/history", response_model=HistoryResponse)
async def assessment_history(
    module_type: Optional[str] = None,
    x_user_id: Optional[str] = Header(default=None),
) -> HistoryResponse:
    user_id = _resolve_identity(x_user_id).current_user_id()
    if not user_id:
        raise HTTPException(status_code=400, detail="X-User-Id header is required.")
    if module_type is not None:
        _module_or_404(module_type)
    repository = _get_repository()
    history = getattr(repository, "history", None)
    if not callable(history):
        raise HTTPException(status_code=501, detail="Configured repository does not support history lookups.")
    return HistoryResponse(user_id=user_id, items=history(user_id, module_type))


async def _readiness_event(payload: ReadinessEventRequest) -> ReadinessEvent:
    if payload.type == "anxiety_submitted":
        return AnxietySubmitted(AnxietyQuestionnaire.from_mapping(payload.questionnaire or {}))
    if payload.type == "style_chosen":
        return StyleChosen(payload.style or "")
    if payload.type == "relaxation_completed":
        # The exercise is timed here; clients cannot report their own duration.
        return await perform_relaxation(_get_sleeper(), _get_config().HEALTHRISK_RELAXATION_SECONDS)
    return SupportChecked(
        support_person_available=payload.support_person_available,
        checklist=tuple(payload.checklist),
    )


_READINESS_AUDIT_TYPES = {
    "anxiety_submitted": "ANXIETY_SUBMITTED",
    "style_chosen": "STYLE_CHOSEN",
    "relaxation_completed": "RELAXATION_COMPLETED",
    "support_checked": "SUPPORT_CHECKED",
}


@app.post("/readiness/sessions", response_model=ReadinessSessionResponse)
async def create_readiness_session() -> ReadinessSessionResponse:
    store = _get_session_store()
    state = initial_readiness_state()
    session_id = store.create_session("readiness", state=state)
    log_event(store, session_id, "SESSION_CREATED", "readiness", "Readiness session created.")
    return ReadinessSessionResponse(session_id=session_id, state=state_snapshot(state, _get_policy()))


@app.post("/readiness/sessions/{session_id}/events", response_model=ReadinessSessionResponse)
async def apply_readiness_event(session_id: str, payload: ReadinessEventRequest) -> ReadinessSessionResponse:
    store = _get_session_store()
    _session_or_404(store, session_id, "readiness")
    policy = _get_policy()
    try:
        event = await _readiness_event(payload)
        # Re-read after the exercise wait so concurrent events are not overwritten.
        current = _session_or_404(store, session_id, "readiness")["state"]
        state: ReadinessState = reduce_readiness(current, event, policy)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc

    store.update(session_id, state=state)
    duration_ms = None
    if isinstance(event, RelaxationCompleted):
        duration_ms = int(event.duration_seconds * 1000)
    log_event(
        store,
        session_id,
        _READINESS_AUDIT_TYPES[payload.type],
        payload.type,
        f"phase={state.phase} tier={state.anxiety_tier} relaxations={state.relaxation_count}",
        duration_ms=duration_ms,
    )
    if state.phase in {"ready", "not_ready"}:
        log_event(
            store,
            session_id,
            "READINESS_EVALUATED",
            state.phase,
            f"score={state.readiness_score:.1f} threshold={policy.threshold:.1f}",
        )
    return ReadinessSessionResponse(session_id=session_id, state=state_snapshot(state, policy))


@app.post("/disclosure/sessions", response_model=DisclosureSessionResponse)
async def create_disclosure_session(
    payload: DisclosureCreateRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> DisclosureSessionResponse:
    module = _module_or_404(payload.module_type)
    store = _get_session_store()
    _session_or_404(store, payload.readiness_session_id, "readiness")
    config = _get_config()

    try:
        factors = module.extract(payload.input)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc

    identity = _resolve_identity(x_user_id)
    repository = _get_repository() if config.HEALTHRISK_PERSISTENCE_ENABLED else None
    readiness_session_id = payload.readiness_session_id

    def _readiness() -> ReadinessState:
        return store.get_session(readiness_session_id, "readiness")["state"]

    def _on_revealed(result: Any) -> PersistOutcome | None:
        if repository is None:
            return None
        return persist_assessment(repository, identity, factors, result)

    orchestrator = DisclosureOrchestrator(
        module,
        lambda: compute_assessment(module, factors),
        _readiness,
        policy=_get_policy(),
        clock=_get_clock(),
        dwell_seconds=config.HEALTHRISK_STAGE_DWELL_SECONDS,
        on_revealed=_on_revealed,
    )
    session_id = store.create_session(
        "disclosure",
        orchestrator=orchestrator,
        module_type=module.module_type,
        readiness_session_id=readiness_session_id,
    )
    log_event(store, session_id, "SESSION_CREATED", "disclosure", f"module={module.module_type}")
    return DisclosureSessionResponse(
        session_id=session_id,
        module_type=module.module_type,
        phase=orchestrator.phase,
        stage=orchestrator.stage,
    )


def _audit_outcome(store: InMemorySessionStore, session_id: str, outcome: AdvanceOutcome) -> None:
    if outcome.not_ready is not None:
        log_event(
            store,
            session_id,
            "DISCLOSURE_BLOCKED",
            outcome.not_ready.required_action or "not_ready",
            f"remaining={','.join(outcome.not_ready.remaining_steps)}",
        )
    elif outcome.phase == "computing":
        log_event(store, session_id, "DISCLOSURE_COMPUTING", "computing", "Readiness satisfied.")
    elif outcome.phase == "revealed" and outcome.payload is not None:
        log_event(store, session_id, "DISCLOSURE_REVEALED", "revealed", f"stage={outcome.stage}")
    elif outcome.payload is not None:
        log_event(store, session_id, "DISCLOSURE_STAGE", f"stage_{outcome.stage}", f"stage={outcome.stage}")


@app.post("/disclosure/sessions/{session_id}/advance", response_model=DisclosureAdvanceResponse)
async def advance_disclosure_session(session_id: str) -> DisclosureAdvanceResponse:
    store = _get_session_store()
    session = _session_or_404(store, session_id, "disclosure")
    orchestrator: DisclosureOrchestrator = session["orchestrator"]
    was_revealed = orchestrator.phase == "revealed"

    try:
        outcome = orchestrator.advance()
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Readiness session expired or missing.") from exc
    except ComputationInvariantViolation as exc:
        store.set_error(session_id, exc.code)
        log_event(store, session_id, "ERROR", exc.code, "Scoring invariant violated.")
        logger.error("disclosure_invariant_violation session=%s code=%s", session_id, exc.code)
        raise HTTPException(status_code=500, detail=f"{exc.code}: {exc.message}") from exc

    _audit_outcome(store, session_id, outcome)

    persistence = None
    if outcome.revealed and not was_revealed:
        receipt = orchestrator.reveal_receipt
        persistence = _persist_info(receipt)
        if receipt is not None and not receipt.saved:
            log_event(store, session_id, "PERSIST_FAILED", receipt.code or "persist_failed", "Result kept in memory.")

    not_ready = outcome.not_ready.snapshot() if outcome.not_ready is not None else None

    return DisclosureAdvanceResponse(
        session_id=session_id,
        phase=outcome.phase,
        stage=outcome.stage,
        payload=outcome.payload,
        not_ready=not_ready,
        wait_seconds=round(outcome.wait_seconds, 3),
        persistence=persistence,
    )
