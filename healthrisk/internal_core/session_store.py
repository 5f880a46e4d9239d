from __future__ import annotations

import logging
import time
import uuid
from threading import RLock
from typing import Any, Callable, Dict, Literal, Optional

from .contracts import AuditEvent

logger = logging.getLogger(__name__)

SessionKind = Literal["readiness", "disclosure"]


class InMemorySessionStore:
    """Live readiness/disclosure sessions; nothing here outlives the process."""

    def __init__(self, ttl_seconds: int, clock: Optional[Callable[[], float]] = None):
        self._ttl_seconds = ttl_seconds
        self._clock = clock or time.time
        self._lock = RLock()
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def create_session(self, kind: SessionKind, **fields: Any) -> str:
        session_id = uuid.uuid4().hex
        now = self._clock()
        with self._lock:
            self._sessions[session_id] = {
                "session_id": session_id,
                "kind": kind,
                "created_at": now,
                "updated_at": now,
                "expires_at": now + self._ttl_seconds,
                "audit_events": [],
                "error": None,
                **fields,
            }
        return session_id

    def _touch(self, session_id: str) -> None:
        now = self._clock()
        session = self._sessions[session_id]
        session["updated_at"] = now
        session["expires_at"] = now + self._ttl_seconds

    def _require(self, session_id: str, kind: Optional[SessionKind]) -> Dict[str, Any]:
        session = self._sessions.get(session_id)
        if session is None or (kind is not None and session["kind"] != kind):
            raise KeyError(f"Unknown session_id: {session_id}")
        return session

    def update(self, session_id: str, **fields: Any) -> None:
        with self._lock:
            self._require(session_id, None).update(fields)
            self._touch(session_id)

    def set_error(self, session_id: str, message: Optional[str]) -> None:
        self.update(session_id, error=message)

    def append_audit_event(self, session_id: str, event: AuditEvent) -> None:
        with self._lock:
            self._require(session_id, None)["audit_events"].append(event)
            self._touch(session_id)

    def get_session(self, session_id: str, kind: Optional[SessionKind] = None) -> Dict[str, Any]:
        with self._lock:
            session = self._require(session_id, kind)
            snapshot = dict(session)
            snapshot["audit_events"] = list(session["audit_events"])
            return snapshot

    def destroy_session(self, session_id: str, reason: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.debug("session_destroyed session=%s kind=%s reason=%s", session_id, session["kind"], reason)
        return session

    def cleanup_expired_sessions(self) -> int:
        now = self._clock()
        expired = []
        with self._lock:
            for session_id, session in self._sessions.items():
                if session["expires_at"] <= now:
                    expired.append(session_id)
        for session_id in expired:
            self.destroy_session(session_id, reason="ttl_expired")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
