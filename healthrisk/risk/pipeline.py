from __future__ import annotations

"""
Assemble one risk module (fields + rule tables + bands + recommendation policy)
and run the extract -> score -> classify -> recommend pipeline.

Design intent:
- AssessmentResult is write-once; a re-run always builds a new result.
- Round to one decimal only in presentation helpers (snapshot/display), never while scoring.
- Keep per-sub-type and overall scores side by side when they can disagree.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from healthrisk.internal_core.errors import ComputationInvariantViolation
from healthrisk.risk.classifier import RiskBands
from healthrisk.risk.engine import ScoreOutcome, ScoringModel, WeightedContribution, score_factors
from healthrisk.risk.factors import DerivedFactor, FactorSet, FieldSpec, extract_factors
from healthrisk.risk.recommendations import RecommendationPolicy, generate_recommendations

logger = logging.getLogger(__name__)

PercentileFn = Callable[[FactorSet, ScoreOutcome], float]
SecondaryFn = Callable[[FactorSet, ScoreOutcome], Mapping[str, float]]


@dataclass(frozen=True)
class RiskModule:
    module_type: str
    title: str
    score_label: str
    method_summary: str
    fields: tuple[FieldSpec, ...]
    model: ScoringModel
    bands: RiskBands
    policy: RecommendationPolicy
    percentile: PercentileFn
    derived: tuple[DerivedFactor, ...] = ()
    secondary: SecondaryFn | None = None
    level_descriptions: Mapping[str, str] | None = None
    score_unit: str = "%"
    # Follow-up checks listed with every result, whatever the level.
    monitoring: tuple[str, ...] = ()

    def extract(self, raw_input: Mapping[str, Any] | None) -> FactorSet:
        return extract_factors(self.fields, raw_input, derived=self.derived)


@dataclass(frozen=True)
class SubtypeRisk:
    name: str
    label: str
    raw_score: float
    score: float
    risk_level: str
    contributions: tuple[WeightedContribution, ...]


@dataclass(frozen=True)
class AssessmentResult:
    module_type: str
    score: float
    score_min: float
    score_max: float
    raw_total: float
    risk_level: str
    breakdown: tuple[SubtypeRisk, ...]
    recommendations: tuple[str, ...]
    percentile: float
    contributions: tuple[WeightedContribution, ...]
    secondary: tuple[tuple[str, float], ...] = ()
    discrepancy: str = ""
    score_unit: str = "%"
    risk_factors: tuple[str, ...] = ()
    protective_factors: tuple[str, ...] = ()
    monitoring: tuple[str, ...] = ()

    @property
    def display_score(self) -> float:
        return round(self.score, 1)

    @property
    def display_percentile(self) -> int:
        return int(round(self.percentile))

    @property
    def risk_percentage(self) -> float:
        # Index-style scores are stored as a share of their range.
        if self.score_unit == "%":
            value = self.score
        else:
            value = (self.score - self.score_min) / (self.score_max - self.score_min) * 100.0
        return round(max(0.0, min(100.0, value)), 1)

    def snapshot(self) -> dict[str, Any]:
        return {
            "module_type": self.module_type,
            "score": round(self.score, 1),
            "score_range": [self.score_min, self.score_max],
            "score_unit": self.score_unit,
            "raw_total": round(self.raw_total, 1),
            "risk_level": self.risk_level,
            "breakdown": [
                {
                    "name": item.name,
                    "label": item.label,
                    "raw_score": round(item.raw_score, 1),
                    "score": round(item.score, 1),
                    "risk_level": item.risk_level,
                }
                for item in self.breakdown
            ],
            "recommendations": list(self.recommendations),
            "percentile": self.display_percentile,
            "contributions": [
                {
                    "rule_id": item.rule_id,
                    "factor": item.factor,
                    "raw_value": list(item.raw_value) if isinstance(item.raw_value, tuple) else item.raw_value,
                    "effect": item.effect,
                    "weight": round(item.weight, 4),
                    "contribution": round(item.contribution, 2),
                    "rationale": item.rationale,
                    "sub_type": item.sub_type,
                }
                for item in self.contributions
            ],
            "secondary": {name: round(value, 3) for name, value in self.secondary},
            "risk_factors": list(self.risk_factors),
            "protective_factors": list(self.protective_factors),
            "monitoring": list(self.monitoring),
            "discrepancy": self.discrepancy,
        }


def compute_assessment(module: RiskModule, factors: FactorSet) -> AssessmentResult:
    outcome = score_factors(module.model, factors)
    _check_in_range(module, outcome)

    level = module.bands.classify(outcome.score)

    breakdown: list[SubtypeRisk] = []
    tables_by_name = {table.name: table for table in module.model.tables}
    for table_score in outcome.tables:
        bands = tables_by_name[table_score.name].bands or module.bands
        breakdown.append(
            SubtypeRisk(
                name=table_score.name,
                label=table_score.label,
                raw_score=table_score.raw_score,
                score=table_score.score,
                risk_level=bands.classify(table_score.score),
                contributions=table_score.contributions,
            )
        )

    recommendations = generate_recommendations(
        module.policy,
        factors,
        outcome.contributions,
        level,
        sub_levels=[item.risk_level for item in breakdown],
    )

    secondary: tuple[tuple[str, float], ...] = ()
    if module.secondary is not None:
        secondary = tuple(module.secondary(factors, outcome).items())

    percentile = float(module.percentile(factors, outcome))
    if not math.isfinite(percentile):
        raise ComputationInvariantViolation(
            "percentile_not_finite",
            f"Module '{module.module_type}' produced a non-finite percentile.",
        )

    result = AssessmentResult(
        module_type=module.module_type,
        score=outcome.score,
        score_min=outcome.minimum,
        score_max=outcome.maximum,
        raw_total=outcome.raw_total,
        risk_level=level,
        breakdown=tuple(breakdown),
        recommendations=recommendations,
        percentile=percentile,
        contributions=outcome.contributions,
        secondary=secondary,
        discrepancy=_describe_discrepancy(outcome),
        score_unit=module.score_unit,
        risk_factors=_factor_labels(outcome.contributions, raising=True),
        protective_factors=_factor_labels(outcome.contributions, raising=False),
        monitoring=module.monitoring,
    )
    logger.debug(
        "assessment_computed module=%s level=%s rules_applied=%s subtypes=%s",
        module.module_type,
        level,
        len(outcome.contributions),
        len(breakdown),
    )
    return result


def describe_level(module: RiskModule, result: AssessmentResult) -> str:
    descriptions = module.level_descriptions or {}
    text = descriptions.get(result.risk_level, "")
    headline = f"{module.score_label}: {result.display_score}{module.score_unit} ({result.risk_level.replace('_', ' ')} risk)."
    return f"{headline} {text}".strip()


def _check_in_range(module: RiskModule, outcome: ScoreOutcome) -> None:
    if math.isnan(outcome.score) or not (outcome.minimum <= outcome.score <= outcome.maximum):
        raise ComputationInvariantViolation(
            "score_out_of_range",
            f"Module '{module.module_type}' score {outcome.score!r} outside "
            f"[{outcome.minimum}, {outcome.maximum}] after clamping.",
        )


def _factor_labels(contributions: tuple[WeightedContribution, ...], *, raising: bool) -> tuple[str, ...]:
    labels: list[str] = []
    for item in contributions:
        moved_up = item.contribution > 0
        if item.contribution == 0 or moved_up != raising:
            continue
        if item.rationale not in labels:
            labels.append(item.rationale)
    return tuple(labels)


def _describe_discrepancy(outcome: ScoreOutcome) -> str:
    if not outcome.tables:
        return ""
    if math.isclose(outcome.raw_total, outcome.score, abs_tol=1e-9):
        return ""
    return (
        "Sub-type scores are clamped independently before aggregation: "
        f"raw total {outcome.raw_total:.1f}, clamped overall {outcome.score:.1f}. "
        "Both values are kept for clinical review."
    )
