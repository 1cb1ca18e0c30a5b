from __future__ import annotations

import random

from pp_recommender.recommendations.filters import (
    filter_by_mods,
    filter_by_precision,
    filter_out_top,
    filter_recently_suggested,
    mods_to_bitwise,
    mods_to_string,
    pick_best_random_precision,
)
from pp_recommender.recommendations.models import ScoreRecord


def _record(beatmap_id, pp=200.0, mods=0, precision=3):
    return ScoreRecord(
        score_id=f"score:{beatmap_id}", beatmap_id=beatmap_id, pp=pp, mods=mods, precision=precision,
    )


def test_mods_to_bitwise():
    assert mods_to_bitwise(["HD", "hr"]) == 24
    assert mods_to_bitwise(["NC"]) == mods_to_bitwise(["DT"]) == 64
    assert mods_to_bitwise(["XX", "HD"]) == 8
    assert mods_to_bitwise([]) == 0


def test_mods_to_string():
    assert mods_to_string(0) == "NM"
    assert mods_to_string(8 | 16) == "+HDHR"
    assert mods_to_string(64 | 8) == "+HDDT"


def test_no_required_mods_means_nomod():
    records = [_record(1, mods=0), _record(2, mods=8), _record(3, mods=32)]
    kept = filter_by_mods(records, [])
    assert [r.beatmap_id for r in kept] == [1, 3]


def test_exact_mods_ignore_neutral_mods():
    records = [_record(1, mods=24), _record(2, mods=24 | 16384), _record(3, mods=8)]
    kept = filter_by_mods(records, ["HD", "HR"])
    assert [r.beatmap_id for r in kept] == [1, 2]


def test_superset_mods_when_others_allowed():
    records = [_record(1, mods=8), _record(2, mods=8 | 64), _record(3, mods=64)]
    kept = filter_by_mods(records, ["HD"], allow_other_mods=True)
    assert [r.beatmap_id for r in kept] == [1, 2]


def test_no_requirement_with_others_allowed_keeps_everything():
    records = [_record(1, mods=0), _record(2, mods=8)]
    assert len(filter_by_mods(records, [], allow_other_mods=True)) == 2


def test_filter_out_top():
    records = [_record(1), _record(2)]
    assert [r.beatmap_id for r in filter_out_top(records, {2})] == [1]
    assert len(filter_out_top(records, None)) == 2


def test_filter_recently_suggested():
    records = [_record(1), _record(2), _record(3)]
    kept = filter_recently_suggested(records, {1, 3})
    assert [r.beatmap_id for r in kept] == [2]


def test_precision_filter_is_strict_and_sorted_descending():
    records = [_record(1, precision=2), _record(2, precision=8), _record(3, precision=5)]
    kept = filter_by_precision(records, 8)
    assert [r.precision for r in kept] == [5, 2]


def test_pick_prefers_lowest_populated_tier():
    records = [_record(1, precision=4), _record(2, precision=2), _record(3, precision=2)]
    picked = pick_best_random_precision(records, rng=random.Random(7))
    assert picked.precision == 2
    assert picked.beatmap_id in (2, 3)


def test_pick_returns_none_without_candidates():
    assert pick_best_random_precision([]) is None
    assert pick_best_random_precision([_record(1, precision=9)]) is None

