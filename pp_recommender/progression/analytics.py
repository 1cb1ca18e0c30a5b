"""
Cross-discipline progression analysis.

Each discipline with enough best scores gets a 0-100 progression index
built from its PP trend, recency, play density, consistency and the shape
of its PP distribution. The global score is the weighted mean of the
per-discipline indexes. Everything here is a pure function of its inputs
and degrades numerically instead of raising.
"""
from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from datetime import datetime

import numpy as np

from ..dates import days_between, utc_now
from ..recommendations.models import TopScore
from .config import DEFAULT_PROGRESSION_CONFIG, ProgressionConfig
from .models import DisciplineDiagnostics, ProgressionResult


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _linear_slope(x: np.ndarray, y: np.ndarray) -> float:
    """Least-squares slope of y over x, 0 when x carries no spread."""
    if x.size < 2 or np.unique(x).size < 2:
        return 0.0
    dx = x - x.mean()
    denominator = float(np.sum(dx * dx))
    if denominator == 0.0:
        return 0.0
    return float(np.sum(dx * (y - y.mean())) / denominator)


def _skewness(values: np.ndarray) -> float:
    n = values.size
    std = float(values.std())
    if n <= 2 or std == 0.0:
        return 0.0
    z = (values - values.mean()) / std
    return float(np.sum(z ** 3) * n / ((n - 1) * (n - 2)))


def _kurtosis(values: np.ndarray) -> float:
    n = values.size
    std = float(values.std())
    if n <= 3 or std == 0.0:
        return 0.0
    z = (values - values.mean()) / std
    excess = np.sum(z ** 4) * n * (n + 1) / ((n - 1) * (n - 2) * (n - 3))
    return float(excess - 3 * (n - 1) ** 2 / ((n - 2) * (n - 3)))


def _summarize(score: float) -> str:
    if score >= 90:
        return "Exceptional progression and adaptability detected."
    if score >= 75:
        return "Strong and consistent upward trend."
    if score >= 55:
        return "Moderate and steady progression."
    if score >= 35:
        return "Slight progression with some signs of activity."
    return "Potential underutilized; signs of improvement needed."


def _analyse_discipline(
    scores: list[TopScore],
    now: datetime,
    config: ProgressionConfig,
) -> tuple[float, DisciplineDiagnostics]:
    scores = sorted(scores, key=lambda s: s.date)
    first = scores[0].date

    pp = np.array([s.pp for s in scores], dtype=float)
    acc = np.nan_to_num(np.array([s.accuracy for s in scores], dtype=float), nan=0.0, posinf=0.0, neginf=0.0)
    stars = np.nan_to_num(np.array([s.stars for s in scores], dtype=float), nan=0.0, posinf=0.0, neginf=0.0)
    days = np.array([days_between(first, s.date) for s in scores], dtype=float)

    slope = _linear_slope(days, pp)
    recent_days = days[-config.recent_window:]
    recent_slope = _linear_slope(recent_days, pp[-config.recent_window:])
    burst = False
    if np.unique(recent_days).size > 1:
        burst = recent_slope > slope * 1.5 or recent_slope > 0.4

    last_age = days_between(scores[-1].date, now)
    best_age = days_between(scores[int(np.argmax(pp))].date, now)
    freshness = max(0.5, 1.3 - last_age / 360)

    peak_boost = 1.0
    if best_age > 180:
        peak_boost = 1.1 if recent_slope > 0.25 else 0.9

    span = days_between(first, now)
    density = 2.0 if span <= 0 else _clamp(len(scores) / span * 30, 0.6, 2.0)

    mean_pp = float(pp.mean())
    acc_consistency = 1 - min(1.0, float(acc.std()) / 10)
    pp_consistency = 1 - min(1.0, float(pp.std()) / mean_pp) if mean_pp > 0 else 0.0
    challenge = min(1.5, float(stars.std()))
    skewness_score = min(2.0, abs(_skewness(pp)))
    kurtosis_score = min(2.0, abs(_kurtosis(pp)))

    mods_used = {m for s in scores for m in s.mods}
    mod_diversity = min(1.0, len(mods_used) / 12)
    overperforming = float(np.count_nonzero(pp > mean_pp * 1.3)) / len(scores)
    potential = 1 + min(0.3, overperforming)

    index = 60.0 + slope * 12
    index *= freshness * density * acc_consistency * pp_consistency
    index *= 1 + mod_diversity * 0.1
    index *= 1 + challenge * 0.1
    index *= 1 + skewness_score * 0.05
    index *= 1 + kurtosis_score * 0.05
    index *= potential * peak_boost
    if burst:
        index *= 1.15
    if recent_slope > 0.5:
        index += 10
    if not math.isfinite(index):
        index = 0.0
    index = _clamp(index, 0.0, 100.0)

    diagnostics = DisciplineDiagnostics(
        slope=round(slope, 4),
        recent_slope=round(recent_slope, 4),
        progression_index=round(index, 2),
        freshness_factor=round(freshness, 2),
        density_factor=round(density, 2),
        acc_consistency=round(acc_consistency, 2),
        pp_consistency=round(pp_consistency, 2),
        challenge_level=round(challenge, 2),
        skewness_score=round(skewness_score, 2),
        kurtosis_score=round(kurtosis_score, 2),
        mod_diversity=len(mods_used),
        overperforming_ratio=round(overperforming * 100, 1),
        burst_detected=burst,
        last_score_age_days=round(last_age),
        best_score_age_days=round(best_age),
        score_count=len(scores),
    )
    return index, diagnostics


def compute_progression(
    player_id: int,
    history_by_discipline: Mapping[str, Sequence[TopScore]],
    config: ProgressionConfig = DEFAULT_PROGRESSION_CONFIG,
    now: datetime | None = None,
) -> ProgressionResult:
    """Compute per-discipline diagnostics and the weighted global score.

    Disciplines with fewer than ``config.min_entries`` usable scores are
    skipped. A discipline without high-PP experience gets a flat boost when
    another discipline has it, modelling skill transfer between modes.
    """
    now = now or utc_now()

    usable: dict[str, list[TopScore]] = {
        discipline: [s for s in (scores or []) if math.isfinite(s.pp)]
        for discipline, scores in history_by_discipline.items()
    }
    experience = {
        discipline: any(s.pp >= config.experience_threshold for s in scores)
        for discipline, scores in usable.items()
    }

    per_discipline: dict[str, DisciplineDiagnostics] = {}
    total = 0.0
    total_weight = 0.0

    for discipline, scores in usable.items():
        if len(scores) < config.min_entries:
            continue

        index, diagnostics = _analyse_discipline(scores, now, config)

        if not experience[discipline] and any(
            has for other, has in experience.items() if other != discipline
        ):
            index = min(100.0, index + config.experience_boost)
            diagnostics.progression_index = round(index, 2)
            diagnostics.boosted_by_experience = True

        per_discipline[discipline] = diagnostics
        weight = config.discipline_weights.get(discipline, 1.0)
        total += index * weight
        total_weight += weight

    global_score = total / total_weight if total_weight > 0 else 0.0
    if not math.isfinite(global_score):
        global_score = 0.0
    global_score = round(_clamp(global_score, 0.0, 100.0), 2)

    return ProgressionResult(
        player_id=player_id,
        global_score=global_score,
        per_discipline=per_discipline,
        experience_detected=experience,
        summary=_summarize(global_score),
    )
