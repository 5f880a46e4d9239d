from __future__ import annotations

import math
from dataclasses import dataclass

from healthrisk.internal_core.errors import ComputationInvariantViolation


@dataclass(frozen=True)
class RiskBands:
    """Ascending thresholds; a score equal to a threshold belongs to the higher band."""

    labels: tuple[str, ...]
    thresholds: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.labels) < 2:
            raise ValueError("RiskBands requires at least two labels.")
        if len(set(self.labels)) != len(self.labels):
            raise ValueError(f"RiskBands labels must be unique: {self.labels}")
        if len(self.thresholds) != len(self.labels) - 1:
            raise ValueError("RiskBands requires exactly one threshold between each pair of labels.")
        for lower, upper in zip(self.thresholds, self.thresholds[1:]):
            if not lower < upper:
                raise ValueError(f"RiskBands thresholds must be strictly ascending: {self.thresholds}")

    def classify(self, score: float) -> str:
        if score is None or isinstance(score, bool) or math.isnan(float(score)):
            raise ComputationInvariantViolation(
                "classifier_no_band",
                f"No risk band for score={score!r}; labels={self.labels}",
            )
        for index, limit in enumerate(self.thresholds):
            if score < limit:
                return self.labels[index]
        return self.labels[-1]

    def rank(self, label: str) -> int:
        try:
            return self.labels.index(label)
        except ValueError as exc:
            raise ComputationInvariantViolation(
                "classifier_unknown_label",
                f"Unknown risk level '{label}'; labels={self.labels}",
            ) from exc

    def top(self, count: int) -> frozenset[str]:
        return frozenset(self.labels[-count:]) if count > 0 else frozenset()
