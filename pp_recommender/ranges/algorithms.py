"""
PP search-window algorithms.

Every algorithm shares one template: a base half-width derived from the
player's rating, an adjustment (skew) derived from recent momentum and the
progression signal, a clamp of that adjustment to 60% of the base, and a
fixed fractional window around the rating when there is no score history.
The variants differ in how wide and how reactive they are.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import ClassVar

from ..dates import days_between, utc_now
from ..progression.models import ProgressionResult
from ..recommendations.models import TopScore
from .models import RangeResult

MAX_ADJUSTMENT_RATIO = 0.6
STALE_DAYS = 1000
STALE_PENALTY = 0.8


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _round(value: float) -> float:
    return float(round(value)) if math.isfinite(value) else value


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _recent_pp(scores: Sequence[TopScore], now: datetime, max_age_days: float) -> list[float]:
    return [s.pp for s in scores if days_between(s.date, now) <= max_age_days]


class RangeAlgorithm(ABC):
    name: ClassVar[str]
    fallback_fraction: ClassVar[float]
    progression_weight: ClassVar[float]
    bonus_scale: ClassVar[float] = 1.0

    def compute(
        self,
        rating: float,
        scores: Sequence[TopScore] | None,
        progression: ProgressionResult | None = None,
        now: datetime | None = None,
    ) -> RangeResult:
        if rating is None or not math.isfinite(rating) or rating < 0:
            rating = 0.0
        now = now or utc_now()

        usable = [s for s in (scores or []) if math.isfinite(s.pp)]
        if not usable:
            return self.fallback(rating)

        base = self.base_range(rating, usable, now)
        adjustment = self.adjustment(rating, base, usable, now)

        if progression is not None:
            factor = (progression.global_score - 50) / 100
            adjustment += base * self.progression_weight * factor
            adjustment += self.bonus_scale * self.discipline_bonus(base, progression)
            stale = sum(
                1 for d in progression.per_discipline.values()
                if d.last_score_age_days > STALE_DAYS
            )
            if stale >= 2:
                adjustment *= STALE_PENALTY

        limit = base * MAX_ADJUSTMENT_RATIO
        adjustment = _clamp(adjustment, -limit, limit)
        return self.window(rating, base, adjustment)

    def fallback(self, rating: float) -> RangeResult:
        spread = rating * self.fallback_fraction
        return RangeResult(
            min=max(0.0, _round(rating - spread)),
            max=_round(rating + spread),
            margin=_round(spread),
            skew=0.0,
        )

    def window(self, rating: float, base: float, adjustment: float) -> RangeResult:
        return RangeResult(
            min=max(0.0, _round(rating - base + adjustment)),
            max=_round(rating + base + adjustment),
            margin=_round(base),
            skew=_round(adjustment),
        )

    def discipline_bonus(self, base: float, progression: ProgressionResult) -> float:
        bonus = 0.0
        for detail in progression.per_discipline.values():
            if detail.burst_detected and detail.recent_slope > 0.3:
                bonus += base * 0.04
            if detail.progression_index >= 75 and detail.last_score_age_days <= 30:
                bonus += base * 0.05
            # dormant peak, but climbing again
            if detail.best_score_age_days > 180 and detail.recent_slope > 0.25:
                bonus += base * 0.03
        return bonus

    @abstractmethod
    def base_range(self, rating: float, scores: Sequence[TopScore], now: datetime) -> float:
        ...

    def adjustment(
        self, rating: float, base: float, scores: Sequence[TopScore], now: datetime
    ) -> float:
        return 0.0


class Conservative(RangeAlgorithm):
    """Narrow window driven by rating and the interquartile spread."""

    name = "Conservative"
    fallback_fraction = 0.2
    progression_weight = 0.2
    bonus_scale = 0.5

    def base_range(self, rating, scores, now):
        ordered = sorted(s.pp for s in scores)
        q1 = ordered[int(len(ordered) * 0.25)]
        q3 = ordered[int(len(ordered) * 0.75)]
        return _clamp(rating * 0.2 + (q3 - q1) * 0.5, 40, 300)


class Balanced(RangeAlgorithm):
    """Compares the last 45 days with the top-10 average."""

    name = "Balanced"
    fallback_fraction = 0.35
    progression_weight = 0.25

    def base_range(self, rating, scores, now):
        return _clamp(rating * 0.3, 60, 450)

    def adjustment(self, rating, base, scores, now):
        top10_avg = _mean(sorted((s.pp for s in scores), reverse=True)[:10])
        recent = _recent_pp(scores, now, 45)
        recent_avg = _mean(recent) if recent else top10_avg
        if top10_avg <= 0:
            return 0.0
        improvement = (recent_avg - top10_avg) / top10_avg
        if improvement > 0.1:
            return base * 0.3
        if improvement < -0.1:
            return -base * 0.25
        return 0.0


class Aggressive(RangeAlgorithm):
    """Wide window that leans hard into 30-day momentum."""

    name = "Aggressive"
    fallback_fraction = 0.5
    progression_weight = 0.4
    bonus_scale = 1.5

    def base_range(self, rating, scores, now):
        return _clamp(rating * 0.4, 80, 600)

    def adjustment(self, rating, base, scores, now):
        top3_avg = _mean(sorted((s.pp for s in scores), reverse=True)[:3])
        recent = _recent_pp(scores, now, 30)
        recent_avg = _mean(recent) if recent else top3_avg
        if top3_avg <= 0:
            return 0.0
        momentum = recent_avg / top3_avg
        if momentum > 1.2:
            return base * 0.6
        if momentum < 0.8:
            return -base * 0.5
        return 0.0


class Dynamic(RangeAlgorithm):
    """Width follows recent volatility, skew follows the 60-day median trend."""

    name = "Dynamic"
    fallback_fraction = 0.4
    progression_weight = 0.3

    def _stats(self, scores: Sequence[TopScore], now: datetime) -> tuple[float, float]:
        ordered = sorted(s.pp for s in scores)
        median = ordered[len(ordered) // 2]
        iqr = ordered[int(len(ordered) * 0.75)] - ordered[int(len(ordered) * 0.25)]

        recent = sorted(_recent_pp(scores, now, 60))
        recent_median = recent[len(recent) // 2] if recent else median
        if len(recent) > 1:
            recent_std = math.sqrt(_mean([(pp - recent_median) ** 2 for pp in recent]))
        else:
            recent_std = iqr * 0.5

        if median <= 0:
            return 0.0, 0.0
        trend = (recent_median - median) / median if recent else 0.0
        volatility = min(1.0, recent_std / median)
        return trend, volatility

    def base_range(self, rating, scores, now):
        _, volatility = self._stats(scores, now)
        return _clamp(rating * (0.25 + volatility * 0.3), 70, 500)

    def adjustment(self, rating, base, scores, now):
        trend, _ = self._stats(scores, now)
        if abs(trend) > 0.05:
            return base * trend * 0.6
        return 0.0

    def discipline_bonus(self, base, progression):
        bonus = super().discipline_bonus(base, progression)
        for detail in progression.per_discipline.values():
            if detail.last_score_age_days > 200:
                bonus -= base * 0.03
        return bonus


class Base(RangeAlgorithm):
    """Log-scaled window; skew only ever widens one side."""

    name = "Base"
    fallback_fraction = 0.3
    progression_weight = 0.35

    def base_range(self, rating, scores, now):
        return _clamp(math.log10(rating + 1) * 75, 50, 1000)

    def adjustment(self, rating, base, scores, now):
        recent = _recent_pp(scores, now, 30)
        if not recent or rating <= 0:
            return 0.0
        ratio = _mean(recent) / (rating * 0.06)
        if ratio > 1.05:
            return base * 0.5
        if ratio < 0.95:
            return -base * 0.3
        return 0.0

    def window(self, rating, base, adjustment):
        return RangeResult(
            min=max(0.0, _round(rating - base + min(0.0, adjustment))),
            max=_round(rating + base + max(0.0, adjustment)),
            margin=_round(base),
            skew=_round(adjustment),
        )


ALGORITHM_ORDER: tuple[str, ...] = ("Conservative", "Balanced", "Aggressive", "Base", "Dynamic")

ALGORITHMS: dict[str, RangeAlgorithm] = {
    algorithm.name: algorithm
    for algorithm in (Conservative(), Balanced(), Aggressive(), Base(), Dynamic())
}


def get_algorithm(name: str) -> RangeAlgorithm:
    """Look up an algorithm by name, ignoring case."""
    for key, algorithm in ALGORITHMS.items():
        if key.lower() == name.strip().lower():
            return algorithm
    raise KeyError(f"Unknown range algorithm: {name}")
