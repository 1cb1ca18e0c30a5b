from __future__ import annotations

from dataclasses import replace

import fakeredis
import pytest

from pp_recommender.index.config import DEFAULT_INDEX_CONFIG
from pp_recommender.index.query import ScoreIndex
from pp_recommender.index.store import index_scores
from pp_recommender.recommendations.models import ScoreRecord

BPMS = (120.0, 150.0, 180.0, 210.0)


def _records(count=60):
    return [
        ScoreRecord(
            score_id=f"score:{i}",
            beatmap_id=5000 + i,
            pp=100.0 + 5 * i,
            precision=i % 9 + 1,
            mods=8 if i % 2 else 0,
            bpm=BPMS[i % 4],
            discipline="mania" if i % 3 == 0 else "osu",
        )
        for i in range(count)
    ]


def _expected(records, low, high, require_mods=False, bpm=None, discipline="osu"):
    return [
        r.score_id for r in records
        if low <= r.pp <= high
        and r.precision <= DEFAULT_INDEX_CONFIG.precision_cap
        and (discipline is None or r.discipline == discipline)
        and (bpm is None or abs(r.bpm - bpm) <= DEFAULT_INDEX_CONFIG.bpm_margin)
        and (not require_mods or r.mods != 0)
    ]


@pytest.fixture
def client():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


def _index(client, records, **overrides):
    config = replace(DEFAULT_INDEX_CONFIG, **overrides)
    index_scores(client, records, config)
    return ScoreIndex(client, config)


@pytest.mark.parametrize("filters", [
    {},
    {"require_mods": True},
    {"bpm": 180.0},
    {"discipline": "mania"},
    {"discipline": None},
    {"require_mods": True, "bpm": 150.0, "discipline": "osu"},
])
def test_script_filters_match_stored_fields(client, filters):
    records = _records()
    index = _index(client, records, chunk_size=7)

    keys = index.scan_window_chunked(120.0, 340.0, **filters)
    expected = _expected(records, 120.0, 340.0, **filters)
    assert expected
    assert keys == expected

    for record in index.hydrate(keys):
        assert 120.0 <= record.pp <= 340.0
        assert record.precision <= 5
        if filters.get("require_mods"):
            assert record.mods != 0
        if filters.get("bpm") is not None:
            assert abs(record.bpm - filters["bpm"]) <= 10
        if filters.get("discipline", "osu") is not None:
            assert record.discipline == filters.get("discipline", "osu")


def test_window_bounds_are_inclusive(client):
    records = _records()
    index = _index(client, records)
    keys = index.scan_window(105.0, 145.0, discipline=None)
    assert keys == _expected(records, 105.0, 145.0, discipline=None)
    assert keys[0] == "score:1"
    assert keys[-1] == "score:9"
    assert "score:8" not in keys


def test_paging_continues_past_a_fully_filtered_chunk(client):
    rejected = [
        ScoreRecord(score_id=f"low:{i}", beatmap_id=i, pp=100.0 + i, precision=9) for i in range(5)
    ]
    kept = [
        ScoreRecord(score_id=f"high:{i}", beatmap_id=10 + i, pp=105.0 + i, precision=2) for i in range(5)
    ]
    index = _index(client, rejected + kept, chunk_size=5)

    keys = index.scan_window_chunked(0.0, 1000.0)
    assert keys == [r.score_id for r in kept]


def test_accepted_keys_are_capped(client):
    records = _records()
    index = _index(client, records, chunk_size=3, max_results=7)

    keys = index.scan_window_chunked(0.0, 1000.0, discipline=None)
    assert keys == _expected(records, 0.0, 1000.0, discipline=None)[:7]


def test_scan_reports_entries_scanned_not_accepted(client):
    index = _index(client, _records())

    scanned, keys = index._scan(
        100.0, 145.0,
        require_mods=False, bpm=None, discipline="osu",
        offset=0, limit=1000, max_accepted=1,
    )
    assert scanned == 10
    assert len(keys) == 1

    scanned, keys = index._scan(
        100.0, 145.0,
        require_mods=False, bpm=None, discipline="osu",
        offset=8, limit=1000, max_accepted=1000,
    )
    assert scanned == 2


def test_chunked_and_single_shot_scans_agree(client):
    index = _index(client, _records(), chunk_size=4)
    for filters in ({}, {"require_mods": True}, {"bpm": 120.0, "discipline": "mania"}):
        assert index.scan_window_chunked(100.0, 400.0, **filters) == index.scan_window(100.0, 400.0, **filters)


def test_entries_missing_filter_fields_are_rejected(client):
    index = _index(client, [])
    client.hset("bare:1", mapping={"beatmap_id": "1", "pp": "200", "type": "osu"})
    client.zadd(DEFAULT_INDEX_CONFIG.scores_key, {"bare:1": 200})
    client.hset("bare:2", mapping={"beatmap_id": "2", "pp": "210", "precision": "1", "type": "osu"})
    client.zadd(DEFAULT_INDEX_CONFIG.scores_key, {"bare:2": 210})

    assert index.scan_window(0.0, 1000.0) == ["bare:2"]
    assert index.scan_window(0.0, 1000.0, require_mods=True) == []


def test_find_scores_by_pp_range_end_to_end(client):
    records = _records()
    index = _index(client, records, chunk_size=6)

    found = index.find_scores_by_pp_range(
        {"min": 150, "max": 300}, require_mods=True, bpm=150.0, event_id="ev1",
    )
    assert [r.score_id for r in found] == _expected(records, 150.0, 300.0, require_mods=True, bpm=150.0)
    assert found
    for record in found:
        assert record.discipline == "osu"
        assert record.mods == 8
        assert record.bpm == 150.0
        assert record.precision <= 5

    assert index.find_scores_by_pp_range({"min": 300, "max": 150}) == []
