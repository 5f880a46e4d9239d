from __future__ import annotations

"""
Generic rule-table scoring engine shared by every risk module.

Design intent:
- One engine, many modules: each module is an ordered table of {predicate, effect} rules.
- Every applied rule leaves a WeightedContribution with a rationale (the score's audit trail).
- Clamp each table to its declared range; never round intermediate values.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Literal, Sequence, Union

from healthrisk.internal_core.errors import ComputationInvariantViolation
from healthrisk.risk.classifier import RiskBands
from healthrisk.risk.factors import ABSENT, FactorSet

Effect = Literal["add", "multiply"]
Aggregate = Literal["single", "sum", "max"]
RuleValue = Union[float, Callable[[FactorSet], float]]
Predicate = Callable[[FactorSet], bool]


@dataclass(frozen=True)
class ScoringRule:
    rule_id: str
    factor: str
    effect: Effect
    value: RuleValue
    rationale: str
    when: Predicate | None = None


def add(
    rule_id: str,
    factor: str,
    weight: RuleValue,
    rationale: str,
    when: Predicate | None = None,
) -> ScoringRule:
    return ScoringRule(rule_id=rule_id, factor=factor, effect="add", value=weight, rationale=rationale, when=when)


def multiply(
    rule_id: str,
    factor: str,
    multiplier: RuleValue,
    rationale: str,
    when: Predicate | None = None,
) -> ScoringRule:
    return ScoringRule(
        rule_id=rule_id,
        factor=factor,
        effect="multiply",
        value=multiplier,
        rationale=rationale,
        when=when,
    )


@dataclass(frozen=True)
class RuleTable:
    name: str
    baseline: float
    rules: tuple[ScoringRule, ...]
    minimum: float
    maximum: float
    label: str = ""
    bands: RiskBands | None = None
    applies: Predicate | None = None

    def __post_init__(self) -> None:
        if not self.minimum < self.maximum:
            raise ValueError(f"RuleTable '{self.name}' has an empty range [{self.minimum}, {self.maximum}].")
        seen: set[str] = set()
        for rule in self.rules:
            if rule.rule_id in seen:
                raise ValueError(f"Duplicate rule_id '{rule.rule_id}' in table '{self.name}'.")
            seen.add(rule.rule_id)


@dataclass(frozen=True)
class ScoringModel:
    tables: tuple[RuleTable, ...]
    aggregate: Aggregate
    minimum: float
    maximum: float

    def __post_init__(self) -> None:
        if not self.tables:
            raise ValueError("ScoringModel requires at least one rule table.")
        if self.aggregate == "single" and len(self.tables) != 1:
            raise ValueError("A 'single' ScoringModel takes exactly one rule table.")
        if not self.minimum < self.maximum:
            raise ValueError(f"ScoringModel has an empty range [{self.minimum}, {self.maximum}].")


@dataclass(frozen=True)
class WeightedContribution:
    rule_id: str
    factor: str
    raw_value: Any
    effect: Effect
    weight: float
    contribution: float
    rationale: str
    sub_type: str = ""


@dataclass(frozen=True)
class TableScore:
    name: str
    label: str
    raw_score: float
    score: float
    contributions: tuple[WeightedContribution, ...]


@dataclass(frozen=True)
class ScoreOutcome:
    raw_total: float
    score: float
    minimum: float
    maximum: float
    tables: tuple[TableScore, ...]
    contributions: tuple[WeightedContribution, ...]

    @property
    def table_scores(self) -> dict[str, float]:
        return {item.name: item.score for item in self.tables}


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def evaluate_table(table: RuleTable, factors: FactorSet, *, sub_type: str = "") -> TableScore:
    total = float(table.baseline)
    contributions: list[WeightedContribution] = []

    for rule in table.rules:
        raw_value = factors.get(rule.factor, ABSENT)
        if raw_value is ABSENT:
            continue
        if rule.when is not None and not rule.when(factors):
            continue

        weight = float(rule.value(factors) if callable(rule.value) else rule.value)
        if not math.isfinite(weight):
            raise ComputationInvariantViolation(
                "rule_weight_not_finite",
                f"Rule '{rule.rule_id}' produced a non-finite weight: {weight!r}",
            )

        before = total
        if rule.effect == "add":
            total = total + weight
        else:
            total = total * weight

        contributions.append(
            WeightedContribution(
                rule_id=rule.rule_id,
                factor=rule.factor,
                raw_value=raw_value,
                effect=rule.effect,
                weight=weight,
                contribution=total - before,
                rationale=rule.rationale,
                sub_type=sub_type,
            )
        )

    return TableScore(
        name=table.name,
        label=table.label or table.name,
        raw_score=total,
        score=clamp(total, table.minimum, table.maximum),
        contributions=tuple(contributions),
    )


def score_factors(model: ScoringModel, factors: FactorSet) -> ScoreOutcome:
    active = [table for table in model.tables if table.applies is None or table.applies(factors)]
    if not active:
        raise ComputationInvariantViolation(
            "no_applicable_tables",
            "No rule table applies to the supplied factor set.",
        )

    if model.aggregate == "single":
        table_score = evaluate_table(active[0], factors)
        return ScoreOutcome(
            raw_total=table_score.raw_score,
            score=clamp(table_score.score, model.minimum, model.maximum),
            minimum=model.minimum,
            maximum=model.maximum,
            tables=(),
            contributions=table_score.contributions,
        )

    table_scores = [evaluate_table(table, factors, sub_type=table.name) for table in active]
    raw_total = _aggregate(model.aggregate, [item.raw_score for item in table_scores])
    clamped_total = _aggregate(model.aggregate, [item.score for item in table_scores])
    contributions: list[WeightedContribution] = []
    for item in table_scores:
        contributions.extend(item.contributions)

    return ScoreOutcome(
        raw_total=raw_total,
        score=clamp(clamped_total, model.minimum, model.maximum),
        minimum=model.minimum,
        maximum=model.maximum,
        tables=tuple(table_scores),
        contributions=tuple(contributions),
    )


def _aggregate(kind: Aggregate, values: Sequence[float]) -> float:
    if kind == "max":
        return max(values)
    return math.fsum(values)
