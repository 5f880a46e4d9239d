from __future__ import annotations

"""
Derive ordered, deduplicated guidance from triggered rules and the risk level.

Design intent:
- Urgent specialist referrals come first when the level sits in the module's top bands.
- Each triggered high-impact rule maps to one static recommendation text.
- Output is never empty; a generic follow-up is the last resort.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence

from healthrisk.risk.engine import WeightedContribution
from healthrisk.risk.factors import FactorSet

FALLBACK_RECOMMENDATION = "Discuss these results with your doctor at your next routine visit."


@dataclass(frozen=True)
class Advisory:
    text: str
    when: Callable[[FactorSet], bool]


@dataclass(frozen=True)
class RecommendationPolicy:
    baseline: tuple[str, ...]
    factor_texts: Mapping[str, str]
    urgent: Mapping[str, tuple[str, ...]]
    advisories: tuple[Advisory, ...] = ()
    fallback: str = FALLBACK_RECOMMENDATION
    # When False only the overall level can trigger referrals.
    urgent_from_subtypes: bool = True


def generate_recommendations(
    policy: RecommendationPolicy,
    factors: FactorSet,
    contributions: Sequence[WeightedContribution],
    level: str,
    *,
    sub_levels: Iterable[str] = (),
) -> tuple[str, ...]:
    output: list[str] = []
    seen: set[str] = set()

    levels = {level}
    if policy.urgent_from_subtypes:
        levels.update(sub_levels)
    for urgent_level, texts in policy.urgent.items():
        if urgent_level not in levels:
            continue
        for text in texts:
            _push(output, seen, text)

    for item in contributions:
        text = policy.factor_texts.get(item.rule_id)
        if text:
            _push(output, seen, text)

    for advisory in policy.advisories:
        if advisory.when(factors):
            _push(output, seen, advisory.text)

    for text in policy.baseline:
        _push(output, seen, text)

    if not output:
        _push(output, seen, policy.fallback or FALLBACK_RECOMMENDATION)
    return tuple(output)


def _push(target: list[str], seen: set[str], text: str) -> None:
    normalized = str(text or "").strip()
    if not normalized:
        return
    if normalized in seen:
        return
    seen.add(normalized)
    target.append(normalized)
