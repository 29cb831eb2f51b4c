"""Weighted inspection scoring."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Sequence

from .components import (
    COMPONENTS,
    MAX_CHOICE,
    MIN_CHOICE,
    InspectionComponent,
)

DEFAULT_WEIGHT = 1.0
SCALE = 20

WeightTable = Mapping[InspectionComponent | str, float]


@dataclass(frozen=True, slots=True)
class ComponentRating:
    """One inspector judgement for a single component."""

    component: InspectionComponent
    choice: int
    note: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "component", InspectionComponent(self.component))
        if isinstance(self.choice, bool) or not isinstance(self.choice, int):
            raise ValueError(f"choice must be an integer, got {self.choice!r}")
        if not MIN_CHOICE <= self.choice <= MAX_CHOICE:
            raise ValueError(
                f"choice must be between {MIN_CHOICE} and {MAX_CHOICE}, got {self.choice}"
            )


@dataclass(frozen=True, slots=True)
class InspectionScore:
    value: int
    component_count: int


class ScoreStatus(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    CRITICAL = "Critical"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _weight_for(weights: WeightTable, component: InspectionComponent) -> float:
    if component in weights:
        return float(weights[component])
    if component.value in weights:
        return float(weights[component.value])
    return DEFAULT_WEIGHT


def score(ratings: Sequence[ComponentRating], weights: WeightTable) -> InspectionScore:
    """Condense *ratings* into a 0-100 score using *weights*.

    Components missing from *weights* count with weight 1. Choice 5 maps to
    100 and choice 1 to 20. An empty rating list, or one whose weights sum to
    zero, scores 0.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    for rating in ratings:
        weight = _weight_for(weights, rating.component)
        weighted_sum += rating.choice * weight
        total_weight += weight

    if not ratings or total_weight <= 0:
        return InspectionScore(value=0, component_count=len(ratings))
    value = round_half_up(weighted_sum / total_weight * SCALE)
    return InspectionScore(value=max(0, min(100, value)), component_count=len(ratings))


def score_status(value: int) -> ScoreStatus:
    """Return the status band for a score."""
    if value >= 85:
        return ScoreStatus.EXCELLENT
    if value >= 70:
        return ScoreStatus.GOOD
    if value >= 50:
        return ScoreStatus.FAIR
    if value >= 30:
        return ScoreStatus.POOR
    return ScoreStatus.CRITICAL


def missing_required(ratings: Iterable[ComponentRating]) -> list[InspectionComponent]:
    """Return required components that have no rating yet, in catalogue order."""
    rated = {rating.component for rating in ratings}
    return [
        spec.component
        for spec in COMPONENTS
        if spec.required and spec.component not in rated
    ]
