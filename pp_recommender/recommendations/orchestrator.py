"""
Tiered fallback search.

The orchestrator walks a small state machine: for each tier (strict,
relaxed, forced) it tries every range algorithm in a fixed order, queries
the score index with the algorithm's window and filters the hits. The first
algorithm whose filtered hits pass the tier's acceptance test wins; a
successful tier ends the search. When the forced tier also comes back
empty the request ends in the "not found" state.
"""
from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..errors import InvalidRangeError
from ..index.query import ScoreIndex
from ..progression.models import ProgressionResult
from ..progression.target import compute_target_pp
from ..ranges.algorithms import get_algorithm
from ..ranges.models import RangeResult
from .config import DEFAULT_ENGINE_CONFIG, EngineConfig
from .filters import (
    filter_by_mods,
    filter_by_precision,
    filter_out_top,
    filter_recently_suggested,
    pick_best_random_precision,
)
from .models import GainCandidate, ScoreRecord, TopScore

logger = logging.getLogger(__name__)

FOUND = "found"
NOT_FOUND = "not_found"


class Tier(str, Enum):
    STRICT = "strict"
    RELAXED = "relaxed"
    FORCED = "forced"


@dataclass(frozen=True)
class TierPolicy:
    tier: Tier
    precision_threshold: int | None = None
    margin: float | None = None
    window_start: float = 0.0
    window_end: float = 0.0


TIER_POLICIES: tuple[TierPolicy, ...] = (
    TierPolicy(Tier.STRICT, precision_threshold=8, margin=15, window_start=0, window_end=28),
    TierPolicy(Tier.RELAXED, precision_threshold=10, margin=25, window_start=-20, window_end=50),
    TierPolicy(Tier.FORCED),
)


@dataclass
class SearchContext:
    """Everything one request needs; owned by the request, never shared."""

    event_id: str
    rating: float
    top_scores: list[TopScore] = field(default_factory=list)
    progression: ProgressionResult | None = None
    exclude_chart_ids: set[int] = field(default_factory=set)
    suggested_ids: set[int] = field(default_factory=set)
    mods: list[str] = field(default_factory=list)
    allow_other_mods: bool = False
    bpm: float | None = None
    target_pp: float | None = None
    computed_target: float | None = None
    discipline: str = "osu"
    now: datetime | None = None

    @property
    def require_mods(self) -> bool:
        return bool(self.mods)


@dataclass
class Attempt:
    tier: Tier | None
    algorithm: str
    window: RangeResult
    hits: int
    eligible: int
    accepted: int


@dataclass
class Outcome:
    status: str
    tier: Tier | None = None
    algorithm: str | None = None
    candidates: list[ScoreRecord] = field(default_factory=list)
    relaxed_criteria: bool = False
    forced: bool = False
    requested: bool = False
    attempts: list[Attempt] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status == FOUND

    def selected(
        self,
        rng: random.Random | None = None,
        tiers: Sequence[int] = DEFAULT_ENGINE_CONFIG.selection_tiers,
    ) -> ScoreRecord | None:
        if not self.found:
            return None
        return pick_best_random_precision(self.candidates, tiers, rng)


def resolve_target(
    explicit: float | None,
    top_scores: Sequence[TopScore],
    progression: ProgressionResult | None,
    gains: Sequence[GainCandidate] = (),
    discipline: str = "osu",
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> float | None:
    """Explicit target first, then one derived from the player's data."""
    if explicit is not None:
        return explicit
    target = compute_target_pp(top_scores, progression, discipline)
    if target is not None:
        return target
    if gains:
        return round(gains[0].value - config.legacy_target_offset, 2)
    return None


class Orchestrator:
    def __init__(
        self,
        index: ScoreIndex,
        algorithms: Sequence[str] | None = None,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    ) -> None:
        self.index = index
        self.config = config
        self.algorithms = tuple(algorithms or config.algorithm_order)

    def run(self, context: SearchContext, algorithm: str | None = None) -> Outcome:
        attempts: list[Attempt] = []

        if algorithm:
            name = get_algorithm(algorithm).name
            window, hits, eligible = self._query(context, name)
            attempts.append(Attempt(None, name, window, hits, len(eligible), len(eligible)))
            if eligible:
                logger.info("[%s] requested algorithm %s found %d result(s)", context.event_id, name, len(eligible))
                return Outcome(
                    status=FOUND, algorithm=name, candidates=eligible,
                    requested=True, attempts=attempts,
                )
            logger.info("[%s] requested algorithm %s found nothing, using full strategy", context.event_id, name)

        for policy in TIER_POLICIES:
            outcome = self._run_tier(context, policy, attempts)
            if outcome is not None:
                return outcome
            logger.info("[%s] no result at %s tier", context.event_id, policy.tier.value)

        return Outcome(status=NOT_FOUND, relaxed_criteria=True, forced=True, attempts=attempts)

    def _query(self, context: SearchContext, name: str) -> tuple[RangeResult, int, list[ScoreRecord]]:
        window = get_algorithm(name).compute(
            context.rating, context.top_scores, context.progression, context.now,
        )
        try:
            hits = self.index.find_scores_by_pp_range(
                window,
                require_mods=context.require_mods,
                bpm=context.bpm,
                event_id=context.event_id,
                discipline=context.discipline,
            )
        except InvalidRangeError as exc:
            logger.warning("[%s] %s window rejected: %s", context.event_id, name, exc)
            return window, 0, []
        eligible = filter_by_mods(hits, context.mods, context.allow_other_mods)
        eligible = filter_out_top(eligible, context.exclude_chart_ids)
        eligible = filter_recently_suggested(eligible, context.suggested_ids)
        return window, len(hits), eligible

    def _accepts(self, context: SearchContext, policy: TierPolicy, record: ScoreRecord) -> bool:
        if context.target_pp is not None:
            return abs(record.pp - context.target_pp) <= policy.margin
        if context.computed_target is not None:
            start = context.computed_target + policy.window_start
            end = context.computed_target + policy.window_end
            return start <= record.pp <= end
        return True

    def _run_tier(
        self,
        context: SearchContext,
        policy: TierPolicy,
        attempts: list[Attempt],
    ) -> Outcome | None:
        for name in self.algorithms:
            window, hits, eligible = self._query(context, name)

            if policy.precision_threshold is None:
                accepted = eligible
            else:
                candidates = filter_by_precision(eligible, policy.precision_threshold)
                accepted = [r for r in candidates if self._accepts(context, policy, r)]

            attempts.append(Attempt(policy.tier, name, window, hits, len(eligible), len(accepted)))
            logger.info(
                "[%s] %s/%s window [%s, %s]: %d eligible, %d accepted",
                context.event_id, policy.tier.value, name, window.min, window.max,
                len(eligible), len(accepted),
            )

            if accepted:
                return Outcome(
                    status=FOUND,
                    tier=policy.tier,
                    algorithm=name,
                    candidates=accepted,
                    relaxed_criteria=policy.tier is not Tier.STRICT,
                    forced=policy.tier is Tier.FORCED,
                    attempts=attempts,
                )
        return None
