from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ModuleType = Literal[
    "framingham_alzheimer",
    "demport",
    "cancer",
    "crc_pro",
    "rais",
]

MODULE_TYPES: tuple[str, ...] = (
    "framingham_alzheimer",
    "demport",
    "cancer",
    "crc_pro",
    "rais",
)


class AssessmentRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(min_length=1)
    module_type: ModuleType
    assessment_data: Dict[str, Any] = Field(default_factory=dict)
    results_data: Dict[str, Any] = Field(default_factory=dict)
    risk_percentage: float = Field(ge=0.0, le=100.0)
    risk_level: str
    recommendations: List[str] = Field(default_factory=list)
    created_at: str


class StoredAssessment(AssessmentRecord):
    record_id: str


AuditEventType = Literal[
    "SESSION_CREATED",
    "ANXIETY_SUBMITTED",
    "STYLE_CHOSEN",
    "RELAXATION_COMPLETED",
    "SUPPORT_CHECKED",
    "READINESS_EVALUATED",
    "DISCLOSURE_BLOCKED",
    "DISCLOSURE_COMPUTING",
    "DISCLOSURE_STAGE",
    "DISCLOSURE_REVEALED",
    "ASSESSMENT_BLOCKED",
    "ASSESSMENT_COMPLETED",
    "PERSIST_FAILED",
    "SESSION_DESTROYED",
    "ERROR",
]


class AuditEvent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ts_iso: str
    session_id: str
    type: AuditEventType
    code: str
    detail: str
    duration_ms: Optional[int] = None
