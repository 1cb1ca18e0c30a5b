from __future__ import annotations

import random
from collections.abc import Iterable, Sequence

from .models import ScoreRecord

MOD_BITS: dict[str, int] = {
    "NF": 1,
    "EZ": 2,
    "HD": 8,
    "HR": 16,
    "SD": 32,
    "DT": 64,
    "NC": 64,
    "RX": 128,
    "FL": 1024,
    "SO": 4096,
    "AP": 8192,
    "PF": 16384,
    "FI": 1048576,
}

# SD and PF change nothing about the PP a play is worth
NEUTRAL_MODS_MASK = MOD_BITS["SD"] | MOD_BITS["PF"]

_DISPLAY_ORDER = ["EZ", "NF", "HD", "HR", "DT", "FL", "SO", "RX", "AP", "SD", "PF", "FI"]


def mods_to_bitwise(names: Iterable[str]) -> int:
    """Unknown mod names are ignored."""
    mask = 0
    for name in names:
        mask |= MOD_BITS.get(name.strip().upper(), 0)
    return mask


def mods_to_string(mask: int) -> str:
    names = [name for name in _DISPLAY_ORDER if mask & MOD_BITS[name]]
    return "+" + "".join(names) if names else "NM"


def filter_out_top(records: Iterable[ScoreRecord], chart_ids: set[int] | None) -> list[ScoreRecord]:
    """Drop charts the player already has in their best-performance list."""
    excluded = chart_ids or set()
    return [r for r in records if r.beatmap_id not in excluded]


def filter_recently_suggested(
    records: Iterable[ScoreRecord], suggested_ids: set[int] | None
) -> list[ScoreRecord]:
    excluded = suggested_ids or set()
    return [r for r in records if r.beatmap_id not in excluded]


def filter_by_mods(
    records: Iterable[ScoreRecord],
    required: Iterable[str],
    allow_other_mods: bool = False,
) -> list[ScoreRecord]:
    """Keep scores whose mods match the requirement.

    With ``allow_other_mods`` the score only has to contain the required
    mods; otherwise it must carry exactly them. Neutral mods are ignored on
    both sides.
    """
    required_mask = mods_to_bitwise(required) & ~NEUTRAL_MODS_MASK

    kept: list[ScoreRecord] = []
    for record in records:
        score_mask = record.mods & ~NEUTRAL_MODS_MASK
        if allow_other_mods:
            matches = (score_mask & required_mask) == required_mask
        else:
            matches = score_mask == required_mask
        if matches:
            kept.append(record)
    return kept


def filter_by_precision(records: Iterable[ScoreRecord], threshold: int) -> list[ScoreRecord]:
    """Scores strictly below *threshold*, least precise first."""
    kept = [r for r in records if r.precision < threshold]
    return sorted(kept, key=lambda r: r.precision, reverse=True)


def pick_best_random_precision(
    records: Sequence[ScoreRecord],
    tiers: Iterable[int] = range(1, 9),
    rng: random.Random | None = None,
) -> ScoreRecord | None:
    """Pick uniformly among the candidates of the best populated precision tier."""
    chooser = rng or random
    for tier in tiers:
        candidates = [r for r in records if r.precision == tier]
        if candidates:
            return chooser.choice(candidates)
    return None

