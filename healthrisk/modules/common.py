from __future__ import annotations

from typing import Callable

from healthrisk.risk.engine import Predicate, ScoreOutcome, clamp
from healthrisk.risk.factors import FactorSet, FieldSpec

GENDERS = ("male", "female")
SMOKING = ("never", "former", "current")
ACTIVITY = ("low", "moderate", "high")
ALCOHOL = ("none", "light", "moderate", "heavy")
LEVEL3 = ("low", "moderate", "high")


def age_field(minimum: float = 18, maximum: float = 100, *, required: bool = True) -> FieldSpec:
    return FieldSpec("age", "integer", required=required, minimum=minimum, maximum=maximum)


def flag_field(name: str) -> FieldSpec:
    return FieldSpec(name, "boolean")


def choice_field(name: str, choices: tuple[str, ...], *, required: bool = False) -> FieldSpec:
    return FieldSpec(name, "choice", required=required, choices=choices)


def is_true(name: str) -> Predicate:
    return lambda factors: factors.flag(name)


def equals(name: str, *options: str) -> Predicate:
    return lambda factors: factors.is_one_of(name, *options)


def at_least(name: str, limit: float) -> Predicate:
    return lambda factors: factors.is_present(name) and factors.number(name) >= limit


def above(name: str, limit: float) -> Predicate:
    return lambda factors: factors.is_present(name) and factors.number(name) > limit


def below(name: str, limit: float) -> Predicate:
    return lambda factors: factors.is_present(name) and factors.number(name) < limit


def between(name: str, lower: float, upper: float) -> Predicate:
    """Half-open age/measurement band: lower <= value < upper."""
    return lambda factors: factors.is_present(name) and lower <= factors.number(name) < upper


def both(first: Predicate, second: Predicate) -> Predicate:
    return lambda factors: first(factors) and second(factors)


def relative_percentile(
    average: Callable[[FactorSet], float],
) -> Callable[[FactorSet, ScoreOutcome], float]:
    """Percentile against an age-average risk: 50 at the average, clamped to [5, 95]."""

    def _percentile(factors: FactorSet, outcome: ScoreOutcome) -> float:
        reference = average(factors)
        if reference <= 0:
            return 50.0
        return clamp(outcome.score / reference * 50.0, 5.0, 95.0)

    return _percentile
