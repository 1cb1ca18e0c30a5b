from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import redis

from pp_recommender.progression.cache import (
    cached_progression,
    clear_cache,
    get_cache_stats,
)
from pp_recommender.progression.models import ProgressionResult
from pp_recommender.recommendations.models import TopScore

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _history(pp=200.0):
    return {"osu": [
        TopScore(beatmap_id=i, pp=pp, date=NOW - timedelta(days=i)) for i in range(20)
    ]}


def test_miss_computes_and_stores():
    client = MagicMock()
    client.get.return_value = None
    result = cached_progression(client, 7, _history(), ttl=60)

    assert result.player_id == 7
    client.incr.assert_called_once_with("progression_cache:misses")
    key, ttl, raw = client.setex.call_args[0]
    assert key.startswith("progression:")
    assert ttl == 60
    assert ProgressionResult.model_validate_json(raw) == result


def test_hit_skips_computation():
    cached = ProgressionResult(player_id=7, global_score=42.0)
    client = MagicMock()
    client.get.return_value = cached.model_dump_json()

    with patch("pp_recommender.progression.cache.compute_progression") as compute:
        result = cached_progression(client, 7, _history())

    assert result == cached
    compute.assert_not_called()
    client.incr.assert_called_once_with("progression_cache:hits")


def test_key_depends_on_history():
    client = MagicMock()
    client.get.return_value = None
    cached_progression(client, 7, _history(200.0))
    cached_progression(client, 7, _history(250.0))
    first, second = (c[0][0] for c in client.setex.call_args_list)
    assert first != second


def test_store_errors_degrade_to_computation():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")
    client.setex.side_effect = redis.ConnectionError("down")
    result = cached_progression(client, 7, _history())
    assert result.player_id == 7


def test_unreadable_entry_is_recomputed_and_overwritten():
    for raw in ("{not json", '{"player_id": 7, "global_score": 250}'):
        client = MagicMock()
        client.get.return_value = raw
        result = cached_progression(client, 7, _history(), ttl=60)

        assert result.player_id == 7
        assert 0 <= result.global_score <= 100
        client.setex.assert_called_once()
        assert client.setex.call_args[0][2] != raw
        assert "progression_cache:hits" not in [c[0][0] for c in client.incr.call_args_list]


def test_stats_and_clear():
    client = MagicMock()
    client.get.side_effect = lambda key: {"progression_cache:hits": "1", "progression_cache:misses": "3"}.get(key)
    client.scan_iter.side_effect = lambda match: iter(["progression:a"])

    assert get_cache_stats(client) == {"size": 1, "hits": 1, "misses": 3, "hit_rate": 25.0}

    clear_cache(client)
    client.delete.assert_any_call("progression:a")
    client.delete.assert_any_call("progression_cache:hits", "progression_cache:misses")
