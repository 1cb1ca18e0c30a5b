from __future__ import annotations

import math
from collections.abc import Sequence

from ..recommendations.models import TopScore
from .models import ProgressionResult

_MIN_SCORES = 50
_WEIGHT_DECAY = 0.95


def compute_target_pp(
    top_scores: Sequence[TopScore],
    progression: ProgressionResult | None,
    discipline: str = "osu",
) -> float | None:
    """Return the PP value a new score should aim for, or None.

    The pivot is the weighted median of the best-performance list; it is
    boosted according to freshness, consistency and skew of the player's
    PP distribution, then capped just above the current best score.
    """
    if len(top_scores) < _MIN_SCORES:
        return None
    if progression is None or discipline not in progression.per_discipline:
        return None

    detail = progression.per_discipline[discipline]
    ordered = sorted(top_scores, key=lambda s: s.pp, reverse=True)[:100]

    weights = [_WEIGHT_DECAY ** i for i in range(len(ordered))]
    total_weight = sum(weights)
    cumulative = 0.0
    pivot_index = 0
    while pivot_index < len(ordered) and cumulative / total_weight < 0.5:
        cumulative += weights[pivot_index]
        pivot_index += 1

    pivot_pp = ordered[max(pivot_index - 1, 0)].pp
    if not math.isfinite(pivot_pp):
        return None
    top_pp = ordered[0].pp

    boost = (
        1.08
        + (detail.freshness_factor - 1) * 0.05
        + (1 - detail.pp_consistency) * 0.04
        + (detail.skewness_score - 1) * 0.015
    )
    boost = min(1.15, max(1.03, boost))

    target = pivot_pp * boost
    target = min(target, top_pp + 80)
    if target <= pivot_pp:
        target = pivot_pp + 1

    return round(target, 2)
