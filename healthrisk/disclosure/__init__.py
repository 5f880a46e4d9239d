"""
Readiness-gated, optionally staged result disclosure.
"""

from healthrisk.disclosure.orchestrator import (
    STAGE_COUNT,
    STAGES,
    AdvanceOutcome,
    DisclosureOrchestrator,
    ReadinessNotMet,
    advance_disclosure,
    run_disclosure,
)

__all__ = [
    "STAGE_COUNT",
    "STAGES",
    "AdvanceOutcome",
    "DisclosureOrchestrator",
    "ReadinessNotMet",
    "advance_disclosure",
    "run_disclosure",
]
