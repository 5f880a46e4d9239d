from __future__ import annotations

"""
Readiness assessor: a pure reducer over preparation events.

Design intent:
- State is immutable; every event returns a new ReadinessState.
- "Ready" is a pure function of state: required steps done and score over threshold.
- Preparation bonuses only ever add; re-submitting the questionnaire recomputes the base.
- A high anxiety tier leaves relaxation as the one remediation while not ready;
  once that latch is set only a completed exercise clears it.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Literal, Mapping, Optional, Union

from healthrisk.internal_core.config import RiskConfig
from healthrisk.internal_core.errors import ValidationError
from healthrisk.internal_core.timing import Sleeper

logger = logging.getLogger(__name__)

AnxietyTier = Literal["low", "medium", "high", "unknown"]
DisclosureStyle = Literal["direct", "gentle", "staged"]
PreviousExperience = Literal["positive", "neutral", "negative", "none"]
ReadinessPhase = Literal[
    "not_started",
    "assessing_anxiety",
    "style_chosen",
    "relaxation",
    "support_checked",
    "ready",
    "not_ready",
]

DISCLOSURE_STYLES: tuple[str, ...] = ("direct", "gentle", "staged")
PREVIOUS_EXPERIENCES: tuple[str, ...] = ("positive", "neutral", "negative", "none")

STEP_ANXIETY = "anxiety_assessment"
STEP_STYLE = "disclosure_style"
STEP_RELAXATION = "relaxation_exercise"
STEP_SUPPORT = "support_check"

SCORE_MIN = 0.0
SCORE_MAX = 100.0

# Base score penalties per questionnaire answer.
_NERVOUS_PENALTY = 4.0
_WORRY_PENALTY = 4.0
_SLEEP_PENALTY = 3.0
_SYMPTOM_PENALTY = 8.0
_MAX_SCORED_SYMPTOMS = 5
_EXPERIENCE_ADJUSTMENT = {"positive": 10.0, "neutral": 0.0, "negative": -15.0, "none": 0.0}

# Anxiety index cut-offs: < 5 low, < 10 medium, otherwise high.
_TIER_LOW_BELOW = 5
_TIER_MEDIUM_BELOW = 10
_MAX_INDEXED_SYMPTOMS = 4


@dataclass(frozen=True)
class PreparationStep:
    id: str
    title: str
    required: bool
    estimated_minutes: int
    completed: bool = False


def default_steps() -> tuple[PreparationStep, ...]:
    return (
        PreparationStep(STEP_ANXIETY, "How are you feeling?", required=True, estimated_minutes=2),
        PreparationStep(STEP_STYLE, "How would you like to receive your results?", required=True, estimated_minutes=1),
        PreparationStep(STEP_RELAXATION, "Breathing exercise", required=False, estimated_minutes=1),
        PreparationStep(STEP_SUPPORT, "Support check", required=True, estimated_minutes=1),
    )


def _score_level(name: str, raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationError(name, "a whole number between 1 and 5")
    if not float(raw).is_integer():
        raise ValidationError(name, "a whole number between 1 and 5")
    value = int(raw)
    if value < 1:
        raise ValidationError(name, ">= 1")
    if value > 5:
        raise ValidationError(name, "<= 5")
    return value


@dataclass(frozen=True)
class AnxietyQuestionnaire:
    feeling_nervous: int
    worried_about_health: int
    sleep_quality: int
    symptoms: tuple[str, ...] = ()
    previous_experience: str = "none"

    def __post_init__(self) -> None:
        object.__setattr__(self, "feeling_nervous", _score_level("feeling_nervous", self.feeling_nervous))
        object.__setattr__(
            self, "worried_about_health", _score_level("worried_about_health", self.worried_about_health)
        )
        object.__setattr__(self, "sleep_quality", _score_level("sleep_quality", self.sleep_quality))

        if isinstance(self.symptoms, str) or not isinstance(self.symptoms, (list, tuple)):
            raise ValidationError("symptoms", "a list of symptom names")
        cleaned: list[str] = []
        for item in self.symptoms:
            text = str(item or "").strip()
            if text and text not in cleaned:
                cleaned.append(text)
        object.__setattr__(self, "symptoms", tuple(cleaned))

        experience = str(self.previous_experience or "none").strip().lower()
        if experience not in PREVIOUS_EXPERIENCES:
            raise ValidationError("previous_experience", f"one of {', '.join(PREVIOUS_EXPERIENCES)}")
        object.__setattr__(self, "previous_experience", experience)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "AnxietyQuestionnaire":
        if not isinstance(raw, Mapping):
            raise ValidationError("questionnaire", "a mapping of answers")
        for name in ("feeling_nervous", "worried_about_health", "sleep_quality"):
            if raw.get(name) is None:
                raise ValidationError(name, "a value (field is required)")
        return cls(
            feeling_nervous=raw["feeling_nervous"],
            worried_about_health=raw["worried_about_health"],
            sleep_quality=raw["sleep_quality"],
            symptoms=raw.get("symptoms") or (),
            previous_experience=raw.get("previous_experience") or "none",
        )


@dataclass(frozen=True)
class AnxietySubmitted:
    questionnaire: AnxietyQuestionnaire


@dataclass(frozen=True)
class StyleChosen:
    style: str

    def __post_init__(self) -> None:
        style = str(self.style or "").strip().lower()
        if style not in DISCLOSURE_STYLES:
            raise ValidationError("style", f"one of {', '.join(DISCLOSURE_STYLES)}")
        object.__setattr__(self, "style", style)


@dataclass(frozen=True)
class RelaxationCompleted:
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class SupportChecked:
    support_person_available: bool = False
    checklist: tuple[str, ...] = ()


ReadinessEvent = Union[AnxietySubmitted, StyleChosen, RelaxationCompleted, SupportChecked]


@dataclass(frozen=True)
class ReadinessPolicy:
    threshold: float = 60.0
    relaxation_bonus: float = 15.0
    support_bonus: float = 10.0
    default_style: str = "gentle"
    # Shortest exercise that earns the relaxation bonus.
    relaxation_seconds: float = 0.0

    @classmethod
    def from_config(cls, config: RiskConfig) -> "ReadinessPolicy":
        return cls(
            threshold=config.HEALTHRISK_READINESS_THRESHOLD,
            relaxation_bonus=config.HEALTHRISK_RELAXATION_BONUS,
            support_bonus=config.HEALTHRISK_SUPPORT_BONUS,
            default_style=config.HEALTHRISK_DEFAULT_STYLE,
            relaxation_seconds=config.HEALTHRISK_RELAXATION_SECONDS,
        )


DEFAULT_POLICY = ReadinessPolicy()


@dataclass(frozen=True)
class ReadinessState:
    phase: ReadinessPhase
    steps: tuple[PreparationStep, ...]
    questionnaire: Optional[AnxietyQuestionnaire] = None
    anxiety_tier: AnxietyTier = "unknown"
    base_score: float = 0.0
    bonus: float = 0.0
    relaxation_count: int = 0
    support_bonus_applied: bool = False
    relaxation_pending: bool = False
    style: Optional[str] = None

    @property
    def readiness_score(self) -> float:
        if self.questionnaire is None:
            return SCORE_MIN
        return max(SCORE_MIN, min(SCORE_MAX, self.base_score + self.bonus))

    def step(self, step_id: str) -> PreparationStep:
        for item in self.steps:
            if item.id == step_id:
                return item
        raise KeyError(f"Unknown preparation step: {step_id}")

    def is_completed(self, step_id: str) -> bool:
        return self.step(step_id).completed


@dataclass(frozen=True)
class EmotionalState:
    anxiety_tier: AnxietyTier
    readiness_score: float
    ready_for_results: bool
    preferred_style: str
    preparation_complete: bool


def initial_readiness_state() -> ReadinessState:
    return ReadinessState(phase="not_started", steps=default_steps())


def base_readiness_score(questionnaire: AnxietyQuestionnaire) -> float:
    score = (
        SCORE_MAX
        - _NERVOUS_PENALTY * (questionnaire.feeling_nervous - 1)
        - _WORRY_PENALTY * (questionnaire.worried_about_health - 1)
        - _SLEEP_PENALTY * (5 - questionnaire.sleep_quality)
        - _SYMPTOM_PENALTY * min(len(questionnaire.symptoms), _MAX_SCORED_SYMPTOMS)
        + _EXPERIENCE_ADJUSTMENT[questionnaire.previous_experience]
    )
    return max(SCORE_MIN, min(SCORE_MAX, score))


def anxiety_tier(questionnaire: Optional[AnxietyQuestionnaire]) -> AnxietyTier:
    if questionnaire is None:
        return "unknown"
    index = (
        (questionnaire.feeling_nervous - 1)
        + (questionnaire.worried_about_health - 1)
        + (5 - questionnaire.sleep_quality)
        + min(len(questionnaire.symptoms), _MAX_INDEXED_SYMPTOMS)
    )
    if index < _TIER_LOW_BELOW:
        return "low"
    if index < _TIER_MEDIUM_BELOW:
        return "medium"
    return "high"


def _complete(steps: tuple[PreparationStep, ...], step_id: str) -> tuple[PreparationStep, ...]:
    return tuple(replace(item, completed=True) if item.id == step_id else item for item in steps)


def required_steps_complete(state: ReadinessState) -> bool:
    return all(item.completed for item in state.steps if item.required)


def is_ready(state: ReadinessState, policy: ReadinessPolicy = DEFAULT_POLICY) -> bool:
    if state.relaxation_pending:
        return False
    return required_steps_complete(state) and state.readiness_score >= policy.threshold


def remaining_steps(state: ReadinessState, policy: ReadinessPolicy = DEFAULT_POLICY) -> list[str]:
    """Incomplete required steps, plus the relaxation exercise when it is the way forward."""
    if is_ready(state, policy):
        return []
    relaxation_needed = (
        state.relaxation_pending
        or state.anxiety_tier == "high"
        or (required_steps_complete(state) and state.readiness_score < policy.threshold)
    )
    output: list[str] = []
    for item in state.steps:
        if item.id == STEP_RELAXATION:
            if relaxation_needed:
                output.append(item.id)
        elif item.required and not item.completed:
            output.append(item.id)
    return output


def required_action(state: ReadinessState, policy: ReadinessPolicy = DEFAULT_POLICY) -> Optional[str]:
    steps = remaining_steps(state, policy)
    if not steps:
        return None
    if (state.relaxation_pending or state.anxiety_tier == "high") and STEP_RELAXATION in steps:
        return STEP_RELAXATION
    return steps[0]


def _settle(state: ReadinessState, phase: ReadinessPhase, policy: ReadinessPolicy) -> ReadinessState:
    pending = state.relaxation_pending
    if required_steps_complete(state):
        if is_ready(state, policy):
            phase = "ready"
        else:
            phase = "not_ready"
            # A calmer re-submission cannot lift this; only RelaxationCompleted does.
            pending = pending or state.anxiety_tier == "high"
    return replace(state, phase=phase, relaxation_pending=pending)


def reduce_readiness(
    state: ReadinessState,
    event: ReadinessEvent,
    policy: ReadinessPolicy = DEFAULT_POLICY,
) -> ReadinessState:
    if isinstance(event, AnxietySubmitted):
        questionnaire = event.questionnaire
        next_state = replace(
            state,
            steps=_complete(state.steps, STEP_ANXIETY),
            questionnaire=questionnaire,
            anxiety_tier=anxiety_tier(questionnaire),
            base_score=base_readiness_score(questionnaire),
        )
        return _settle(next_state, "assessing_anxiety", policy)

    if isinstance(event, StyleChosen):
        next_state = replace(state, steps=_complete(state.steps, STEP_STYLE), style=event.style)
        return _settle(next_state, "style_chosen", policy)

    if isinstance(event, RelaxationCompleted):
        if event.duration_seconds < policy.relaxation_seconds:
            raise ValidationError("duration_seconds", f">= {policy.relaxation_seconds:g}")
        next_state = replace(
            state,
            steps=_complete(state.steps, STEP_RELAXATION),
            bonus=state.bonus + policy.relaxation_bonus,
            relaxation_count=state.relaxation_count + 1,
            relaxation_pending=False,
        )
        return _settle(next_state, "relaxation", policy)

    if isinstance(event, SupportChecked):
        bonus = state.bonus
        if not state.support_bonus_applied:
            bonus += policy.support_bonus
        next_state = replace(
            state,
            steps=_complete(state.steps, STEP_SUPPORT),
            bonus=bonus,
            support_bonus_applied=True,
        )
        return _settle(next_state, "support_checked", policy)

    raise TypeError(f"Unsupported readiness event: {type(event).__name__}")


def emotional_state(state: ReadinessState, policy: ReadinessPolicy = DEFAULT_POLICY) -> EmotionalState:
    return EmotionalState(
        anxiety_tier=state.anxiety_tier,
        readiness_score=state.readiness_score,
        ready_for_results=is_ready(state, policy),
        preferred_style=state.style or policy.default_style,
        preparation_complete=required_steps_complete(state),
    )


def assess_readiness(
    questionnaire: Union[AnxietyQuestionnaire, Mapping[str, Any]],
    policy: ReadinessPolicy = DEFAULT_POLICY,
) -> EmotionalState:
    if not isinstance(questionnaire, AnxietyQuestionnaire):
        questionnaire = AnxietyQuestionnaire.from_mapping(questionnaire)
    state = reduce_readiness(initial_readiness_state(), AnxietySubmitted(questionnaire), policy)
    result = emotional_state(state, policy)
    logger.debug(
        "readiness_assessed tier=%s score=%.1f",
        result.anxiety_tier,
        result.readiness_score,
    )
    return result


async def perform_relaxation(sleeper: Sleeper, duration_seconds: float) -> RelaxationCompleted:
    """Wait out the exercise; cancelling the task leaves the state untouched."""
    await sleeper.sleep(duration_seconds)
    return RelaxationCompleted(duration_seconds=duration_seconds)


def state_snapshot(state: ReadinessState, policy: ReadinessPolicy = DEFAULT_POLICY) -> dict[str, Any]:
    emotional = emotional_state(state, policy)
    return {
        "phase": state.phase,
        "anxiety_tier": emotional.anxiety_tier,
        "readiness_score": round(emotional.readiness_score, 1),
        "ready_for_results": emotional.ready_for_results,
        "preferred_style": emotional.preferred_style,
        "preparation_complete": emotional.preparation_complete,
        "relaxation_count": state.relaxation_count,
        "relaxation_pending": state.relaxation_pending,
        "remaining_steps": remaining_steps(state, policy),
        "required_action": required_action(state, policy),
        "steps": [
            {
                "id": item.id,
                "title": item.title,
                "required": item.required,
                "completed": item.completed,
                "estimated_minutes": item.estimated_minutes,
            }
            for item in state.steps
        ],
    }
