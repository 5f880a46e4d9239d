"""
Emotional readiness gate for result disclosure.

Design intent:
- Model preparation as a closed set of events folded by a pure reducer.
- Keep the readiness predicate independent of any UI flow.
"""

from healthrisk.readiness.assessor import (
    DEFAULT_POLICY,
    AnxietyQuestionnaire,
    AnxietySubmitted,
    EmotionalState,
    PreparationStep,
    ReadinessPolicy,
    ReadinessState,
    RelaxationCompleted,
    StyleChosen,
    SupportChecked,
    assess_readiness,
    emotional_state,
    initial_readiness_state,
    is_ready,
    perform_relaxation,
    reduce_readiness,
    remaining_steps,
    required_action,
)

__all__ = [
    "DEFAULT_POLICY",
    "AnxietyQuestionnaire",
    "AnxietySubmitted",
    "EmotionalState",
    "PreparationStep",
    "ReadinessPolicy",
    "ReadinessState",
    "RelaxationCompleted",
    "StyleChosen",
    "SupportChecked",
    "assess_readiness",
    "emotional_state",
    "initial_readiness_state",
    "is_ready",
    "perform_relaxation",
    "reduce_readiness",
    "remaining_steps",
    "required_action",
]
