from __future__ import annotations

import datetime as _dt
import re
from typing import Optional

from .contracts import AuditEvent, AuditEventType
from .session_store import InMemorySessionStore

_MAX_DETAIL_CHARS = 200

# Keys that carry codes, levels or counts. Anything else in a key=value detail
# could be a raw answer or factor value and is masked.
AUDIT_DETAIL_KEYS = frozenset(
    {
        "phase",
        "tier",
        "score",
        "threshold",
        "module",
        "level",
        "stage",
        "remaining",
        "relaxations",
        "seconds",
        "saved",
    }
)
_PAIR_RE = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)=(\S+)")
_REDACTED = "[redacted]"


def _ts_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat()


def _redact_pair(match: re.Match[str]) -> str:
    key = match.group(1)
    if key.lower() in AUDIT_DETAIL_KEYS:
        return match.group(0)
    return f"{key}={_REDACTED}"


def _sanitize_detail(detail: str) -> str:
    # Never include questionnaire answers or raw health inputs in detail.
    detail = (detail or "").replace("\n", " ").strip()
    detail = _PAIR_RE.sub(_redact_pair, detail)
    if len(detail) > _MAX_DETAIL_CHARS:
        detail = detail[:_MAX_DETAIL_CHARS] + "..."
    return detail


def log_event(
    store: InMemorySessionStore,
    session_id: str,
    event_type: AuditEventType,
    code: str,
    detail: str,
    duration_ms: Optional[int] = None,
) -> None:
    event = AuditEvent(
        ts_iso=_ts_iso(),
        session_id=session_id,
        type=event_type,
        code=code,
        detail=_sanitize_detail(detail),
        duration_ms=duration_ms,
    )
    store.append_audit_event(session_id, event)
