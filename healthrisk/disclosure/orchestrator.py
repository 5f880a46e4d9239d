from __future__ import annotations

"""
Readiness-gated disclosure of one assessment result.

Design intent:
- One explicit state machine per request: blocked -> computing -> revealing -> revealed.
- A single advance() call moves at most one step and returns what happened.
- Scoring runs only after readiness holds; nothing is persisted before the final reveal.
- Dwell times come from an injected clock so tests never wait on the wall clock.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

from healthrisk.internal_core.timing import Clock, MonotonicClock, Sleeper
from healthrisk.readiness.assessor import (
    DEFAULT_POLICY,
    ReadinessPolicy,
    ReadinessState,
    emotional_state,
    is_ready,
    remaining_steps,
    required_action,
)
from healthrisk.risk.pipeline import AssessmentResult, RiskModule, describe_level

logger = logging.getLogger(__name__)

DisclosurePhase = Literal["blocked", "computing", "revealing", "revealed"]

STAGE_COUNT = 5


@dataclass(frozen=True)
class StageInfo:
    number: int
    key: str
    title: str


STAGES: tuple[StageInfo, ...] = (
    StageInfo(1, "priming", "Before you see your result"),
    StageInfo(2, "methodology", "How this estimate works"),
    StageInfo(3, "headline", "Your result"),
    StageInfo(4, "breakdown", "What contributed"),
    StageInfo(5, "next_actions", "What you can do next"),
)

PRIMING_MESSAGE = (
    "A risk estimate describes likelihood, not certainty. Many of the factors behind it can change, "
    "and you can stop at any point."
)
GENTLE_FRAMING = (
    "Take a moment before reading on. This result is an estimate to support a conversation with your "
    "doctor; it is not a diagnosis."
)


@dataclass(frozen=True)
class ReadinessNotMet:
    remaining_steps: tuple[str, ...]
    readiness_score: float
    anxiety_tier: str
    required_action: Optional[str]

    @classmethod
    def from_state(cls, state: ReadinessState, policy: ReadinessPolicy = DEFAULT_POLICY) -> "ReadinessNotMet":
        return cls(
            remaining_steps=tuple(remaining_steps(state, policy)),
            readiness_score=state.readiness_score,
            anxiety_tier=state.anxiety_tier,
            required_action=required_action(state, policy),
        )

    def snapshot(self) -> dict[str, Any]:
        return {
            "remaining_steps": list(self.remaining_steps),
            "readiness_score": round(self.readiness_score, 1),
            "anxiety_tier": self.anxiety_tier,
            "required_action": self.required_action,
        }


@dataclass(frozen=True)
class AdvanceOutcome:
    phase: DisclosurePhase
    stage: int
    payload: Optional[dict[str, Any]] = None
    not_ready: Optional[ReadinessNotMet] = None
    wait_seconds: float = 0.0
    result: Optional[AssessmentResult] = None

    @property
    def revealed(self) -> bool:
        return self.phase == "revealed"


class DisclosureOrchestrator:
    def __init__(
        self,
        module: RiskModule,
        compute: Callable[[], AssessmentResult],
        readiness: Callable[[], ReadinessState],
        *,
        policy: ReadinessPolicy = DEFAULT_POLICY,
        clock: Optional[Clock] = None,
        dwell_seconds: float = 8.0,
        on_revealed: Optional[Callable[[AssessmentResult], Any]] = None,
        label: str = "",
    ) -> None:
        if dwell_seconds < 0:
            raise ValueError("dwell_seconds must be >= 0")
        self._module = module
        self._compute = compute
        self._readiness = readiness
        self._policy = policy
        self._clock = clock or MonotonicClock()
        self._dwell_seconds = float(dwell_seconds)
        self._on_revealed = on_revealed
        self._label = label

        self._phase: DisclosurePhase = "blocked"
        self._stage = 0
        self._style: Optional[str] = None
        self._result: Optional[AssessmentResult] = None
        self._stage_started_at: Optional[float] = None
        self.reveal_receipt: Any = None

    @property
    def phase(self) -> DisclosurePhase:
        return self._phase

    @property
    def stage(self) -> int:
        return self._stage

    @property
    def style(self) -> Optional[str]:
        return self._style

    @property
    def result(self) -> Optional[AssessmentResult]:
        return self._result

    def advance(self, now: Optional[float] = None) -> AdvanceOutcome:
        current = self._clock.now() if now is None else float(now)

        if self._phase == "revealed":
            return AdvanceOutcome(phase="revealed", stage=self._stage, result=self._result)
        if self._phase == "blocked":
            return self._advance_blocked()
        if self._phase == "computing":
            return self._advance_computing(current)
        return self._advance_revealing(current)

    def _advance_blocked(self) -> AdvanceOutcome:
        state = self._readiness()
        if not is_ready(state, self._policy):
            not_met = ReadinessNotMet.from_state(state, self._policy)
            logger.info(
                "disclosure_blocked label=%s score=%.1f tier=%s remaining=%s",
                self._label,
                not_met.readiness_score,
                not_met.anxiety_tier,
                ",".join(not_met.remaining_steps),
            )
            return AdvanceOutcome(phase="blocked", stage=0, not_ready=not_met)

        self._style = emotional_state(state, self._policy).preferred_style
        self._phase = "computing"
        logger.info("disclosure_computing label=%s style=%s", self._label, self._style)
        return AdvanceOutcome(phase="computing", stage=0)

    def _advance_computing(self, now: float) -> AdvanceOutcome:
        result = self._compute()
        self._result = result

        if self._style == "staged":
            self._phase = "revealing"
            self._stage = 1
            self._stage_started_at = now
            logger.info("disclosure_stage label=%s stage=1", self._label)
            return AdvanceOutcome(
                phase="revealing",
                stage=1,
                payload=self._stage_payload(1),
                wait_seconds=self._dwell_seconds,
                result=result,
            )

        payload = self._full_payload()
        self._mark_revealed()
        return AdvanceOutcome(phase="revealed", stage=self._stage, payload=payload, result=result)

    def _advance_revealing(self, now: float) -> AdvanceOutcome:
        started = self._stage_started_at if self._stage_started_at is not None else now
        elapsed = now - started
        if elapsed < self._dwell_seconds:
            return AdvanceOutcome(
                phase="revealing",
                stage=self._stage,
                wait_seconds=self._dwell_seconds - elapsed,
                result=self._result,
            )

        self._stage += 1
        self._stage_started_at = now
        payload = self._stage_payload(self._stage)
        logger.info("disclosure_stage label=%s stage=%s", self._label, self._stage)
        if self._stage >= STAGE_COUNT:
            self._mark_revealed()
            return AdvanceOutcome(phase="revealed", stage=self._stage, payload=payload, result=self._result)
        return AdvanceOutcome(
            phase="revealing",
            stage=self._stage,
            payload=payload,
            wait_seconds=self._dwell_seconds,
            result=self._result,
        )

    def _mark_revealed(self) -> None:
        self._phase = "revealed"
        logger.info("disclosure_revealed label=%s style=%s stage=%s", self._label, self._style, self._stage)
        if self._on_revealed is not None and self._result is not None:
            self.reveal_receipt = self._on_revealed(self._result)

    def _stage_payload(self, number: int) -> dict[str, Any]:
        info = STAGES[number - 1]
        body = _STAGE_BUILDERS[info.key](self._module, self._result)
        return {"stage": number, "key": info.key, "title": info.title, **body}

    def _full_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"style": self._style}
        if self._style == "gentle":
            payload["framing"] = GENTLE_FRAMING
        for info in STAGES:
            if info.key == "priming" and self._style != "gentle":
                continue
            payload.update(_STAGE_BUILDERS[info.key](self._module, self._result))
        return payload


def _priming(module: RiskModule, result: Optional[AssessmentResult]) -> dict[str, Any]:
    return {"message": PRIMING_MESSAGE}


def _methodology(module: RiskModule, result: Optional[AssessmentResult]) -> dict[str, Any]:
    return {"assessment": module.title, "method": module.method_summary}


def _headline(module: RiskModule, result: Optional[AssessmentResult]) -> dict[str, Any]:
    if result is None:
        return {}
    return {
        "score": result.display_score,
        "score_unit": result.score_unit,
        "risk_level": result.risk_level,
        "percentile": result.display_percentile,
        "explanation": describe_level(module, result),
        "discrepancy": result.discrepancy,
    }


def _breakdown(module: RiskModule, result: Optional[AssessmentResult]) -> dict[str, Any]:
    if result is None:
        return {}
    snapshot = result.snapshot()
    return {
        "contributions": snapshot["contributions"],
        "subtypes": snapshot["breakdown"],
        "risk_factors": snapshot["risk_factors"],
        "protective_factors": snapshot["protective_factors"],
    }


def _next_actions(module: RiskModule, result: Optional[AssessmentResult]) -> dict[str, Any]:
    if result is None:
        return {}
    return {"recommendations": list(result.recommendations), "monitoring": list(result.monitoring)}


_STAGE_BUILDERS: dict[str, Callable[[RiskModule, Optional[AssessmentResult]], dict[str, Any]]] = {
    "priming": _priming,
    "methodology": _methodology,
    "headline": _headline,
    "breakdown": _breakdown,
    "next_actions": _next_actions,
}


def advance_disclosure(handle: DisclosureOrchestrator) -> AdvanceOutcome:
    return handle.advance()


async def run_disclosure(
    orchestrator: DisclosureOrchestrator,
    *,
    sleeper: Sleeper,
    on_outcome: Optional[Callable[[AdvanceOutcome], None]] = None,
) -> AdvanceOutcome:
    """Drive an orchestrator to its reveal, or return the first blocked outcome."""
    while True:
        outcome = orchestrator.advance()
        if on_outcome is not None:
            on_outcome(outcome)
        if outcome.revealed or outcome.not_ready is not None:
            return outcome
        if outcome.wait_seconds > 0:
            await sleeper.sleep(outcome.wait_seconds)
