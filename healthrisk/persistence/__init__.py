from healthrisk.persistence.repository import (
    AssessmentRepository,
    AssessmentRun,
    IdentityProvider,
    InMemoryAssessmentRepository,
    PersistOutcome,
    StaticIdentityProvider,
    build_assessment_record,
    persist_assessment,
    run_assessment,
)

__all__ = [
    "AssessmentRepository",
    "AssessmentRun",
    "IdentityProvider",
    "InMemoryAssessmentRepository",
    "PersistOutcome",
    "StaticIdentityProvider",
    "build_assessment_record",
    "persist_assessment",
    "run_assessment",
]
