"""Shared scoring primitives: weighted factor scores, point tables, buckets.

Every scorer in the package is one of two shapes:

* **weighted** — factors each scored 0-100, combined with weights that sum
  to 100 (M&A probability, deal ranking, integration risk, quote overall).
  ``WeightedScorer`` produces the score plus a breakdown whose contributions
  add up to the score within ± the number of factors.
* **additive** — a base value plus fixed points per rule that fires,
  clamped (deal quality, completion probability, criticality).
  ``apply_point_rules`` evaluates a ``PointRule`` table.

A factor value of ``None`` means "no data".  It is excluded from the
weighted average and the remaining weights are renormalised, so an
unmeasured signal never reads as a measured zero.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Mapping, NamedTuple, Sequence, TypeVar

from alphavault.models import ScoreBreakdownEntry, ScoreResult

T = TypeVar("T")

UNAVAILABLE = "UNAVAILABLE"


def round_half_up(value: float) -> int:
    """Round halves upward (2.5 → 3, -2.5 → -2); round() would give 2."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def bucket(score: float, bands: Sequence[tuple[float, T]], default: T) -> T:
    """First label whose threshold ``score`` reaches (bands sorted high → low)."""
    for threshold, label in bands:
        if score >= threshold:
            return label
    return default


# Status shown next to each factor in a breakdown
STATUS_BANDS: tuple[tuple[float, str], ...] = ((70, "HIGH"), (40, "MEDIUM"))


def factor_status(value: float | None) -> str:
    if value is None:
        return UNAVAILABLE
    return bucket(value, STATUS_BANDS, "LOW")


# ═══════════════════════════════════════════════════════════════════════════
#  Weighted scorer
# ═══════════════════════════════════════════════════════════════════════════

class WeightedScorer:
    """Weighted average of 0-100 factors with an explainable breakdown.

    ``weights`` maps factor key → nominal weight; weights must sum to 100.
    ``labels`` optionally maps factor key → display name for the breakdown.
    """

    def __init__(self, weights: Mapping[str, float], labels: Mapping[str, str] | None = None):
        total = sum(weights.values())
        if not math.isclose(total, 100):
            raise ValueError(f"Weights must sum to 100, got {total}")
        self.weights = dict(weights)
        self.labels = dict(labels or {})

    def score(self, values: Mapping[str, float | None]) -> ScoreResult:
        available = {
            key: clamp(float(values[key]))
            for key in self.weights
            if values.get(key) is not None
        }
        unavailable = [key for key in self.weights if key not in available]
        available_weight = sum(self.weights[key] for key in available)

        if available_weight == 0:
            final = 0
        else:
            weighted = sum(v * self.weights[k] for k, v in available.items())
            final = round_half_up(weighted / available_weight)

        breakdown: list[ScoreBreakdownEntry] = []
        for key, weight in self.weights.items():
            value = available.get(key)
            if value is None:
                effective = 0.0
                contribution = 0
            else:
                effective = weight * 100 / available_weight
                contribution = round_half_up(value * effective / 100)
            breakdown.append(ScoreBreakdownEntry(
                name=self.labels.get(key, key),
                value=round_half_up(value) if value is not None else None,
                weight=weight,
                effective_weight=round(effective, 2),
                contribution=contribution,
                status=factor_status(value),
            ))

        # Stable sort keeps declaration order among equal contributions
        breakdown.sort(key=lambda e: e.contribution, reverse=True)
        return ScoreResult(score=int(clamp(final)), breakdown=breakdown, unavailable=unavailable)


# ═══════════════════════════════════════════════════════════════════════════
#  Additive point tables
# ═══════════════════════════════════════════════════════════════════════════

class PointRule(NamedTuple):
    """``points`` are added when ``applies(subject)`` is true."""
    name: str
    points: int
    applies: Callable[[Any], bool]


def apply_point_rules(
    subject: Any,
    base: int,
    rules: Sequence[PointRule],
    low: int = 0,
    high: int = 100,
) -> int:
    """Sum ``base`` and the points of every rule that fires, clamped to [low, high]."""
    total = base + sum(rule.points for rule in rules if rule.applies(subject))
    return int(clamp(total, low, high))


def tiered_points(value: float, tiers: Sequence[tuple[float, int]], default: int = 0) -> int:
    """Points for the first tier whose floor ``value`` reaches (tiers high → low)."""
    return bucket(value, tiers, default)
