from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping, Sequence

import redis
from pydantic import ValidationError

from ..index.config import DEFAULT_INDEX_CONFIG
from ..recommendations.models import TopScore
from .analytics import compute_progression
from .models import ProgressionResult

logger = logging.getLogger(__name__)

_PREFIX = "progression:"
_HITS_KEY = "progression_cache:hits"
_MISSES_KEY = "progression_cache:misses"


def _make_key(player_id: int, history: Mapping[str, Sequence[TopScore]]) -> str:
    signature = {
        discipline: [[s.beatmap_id, s.pp, s.date.isoformat()] for s in scores]
        for discipline, scores in history.items()
    }
    normalized = json.dumps({"player": player_id, "history": signature}, sort_keys=True)
    return _PREFIX + hashlib.sha256(normalized.encode()).hexdigest()[:16]


def cache_get(
    client: redis.Redis,
    player_id: int,
    history: Mapping[str, Sequence[TopScore]],
) -> ProgressionResult | None:
    key = _make_key(player_id, history)
    try:
        raw = client.get(key)
        if raw:
            result = ProgressionResult.model_validate_json(raw)
            client.incr(_HITS_KEY)
            return result
        client.incr(_MISSES_KEY)
    except redis.RedisError:
        logger.warning("Progression cache read failed for player %s", player_id, exc_info=True)
    except ValidationError:
        logger.warning("Discarding unreadable progression cache entry for player %s", player_id)
    return None


def cache_set(
    client: redis.Redis,
    player_id: int,
    history: Mapping[str, Sequence[TopScore]],
    result: ProgressionResult,
    ttl: int = DEFAULT_INDEX_CONFIG.progression_ttl,
) -> None:
    key = _make_key(player_id, history)
    try:
        client.setex(key, ttl, result.model_dump_json())
    except redis.RedisError:
        logger.warning("Progression cache write failed for player %s", player_id, exc_info=True)


def cached_progression(
    client: redis.Redis,
    player_id: int,
    history: Mapping[str, Sequence[TopScore]],
    ttl: int = DEFAULT_INDEX_CONFIG.progression_ttl,
) -> ProgressionResult:
    """Return the progression for *history*, computing it on a cache miss."""
    cached = cache_get(client, player_id, history)
    if cached is not None:
        return cached
    result = compute_progression(player_id, history)
    cache_set(client, player_id, history, result, ttl)
    return result


def get_cache_stats(client: redis.Redis) -> dict:
    hits = int(client.get(_HITS_KEY) or 0)
    misses = int(client.get(_MISSES_KEY) or 0)
    total = hits + misses
    return {
        "size": sum(1 for _ in client.scan_iter(match=f"{_PREFIX}*")),
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / total * 100, 1) if total > 0 else 0.0,
    }


def clear_cache(client: redis.Redis) -> None:
    keys = list(client.scan_iter(match=f"{_PREFIX}*"))
    if keys:
        client.delete(*keys)
    client.delete(_HITS_KEY, _MISSES_KEY)
