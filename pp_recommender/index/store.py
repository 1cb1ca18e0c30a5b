from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

import redis

from ..recommendations.models import ScoreRecord
from .config import DEFAULT_INDEX_CONFIG, IndexConfig

logger = logging.getLogger(__name__)

_PENDING_PREFIX = "pending:"
_UNRESOLVED_KEY = "unresolved:pending"
_CANCELLED_KEY = "cancelled:pending"


def get_client(config: IndexConfig = DEFAULT_INDEX_CONFIG) -> redis.Redis:
    return redis.Redis(
        host=config.host,
        port=config.port,
        db=config.db,
        decode_responses=True,
        socket_connect_timeout=config.connect_timeout,
    )


def _suggested_key(player_id: int) -> str:
    return f"user:{player_id}:suggested"


# ---------------------------------------------------------------------------
# Index maintenance
# ---------------------------------------------------------------------------


def index_scores(
    client: redis.Redis,
    records: Iterable[ScoreRecord],
    config: IndexConfig = DEFAULT_INDEX_CONFIG,
) -> int:
    """Write *records* into the index; returns the number written.

    The index is a secondary structure, so rebuilding it is just a matter of
    replaying every known record through this function.
    """
    pipe = client.pipeline(transaction=False)
    count = 0
    for record in records:
        pipe.hset(record.score_id, mapping=record.to_hash())
        pipe.zadd(config.scores_key, {record.score_id: record.pp})
        count += 1
    if count:
        pipe.execute()
    return count


# ---------------------------------------------------------------------------
# Request markers (operator visibility only)
# ---------------------------------------------------------------------------


def mark_pending(
    client: redis.Redis,
    request_id: str,
    ttl: int = DEFAULT_INDEX_CONFIG.pending_ttl,
) -> None:
    try:
        client.set(f"{_PENDING_PREFIX}{request_id}", "1", ex=ttl)
        client.zadd(_UNRESOLVED_KEY, {request_id: time.time()})
    except redis.RedisError:
        logger.warning("Could not mark request %s pending", request_id, exc_info=True)


def mark_resolved(client: redis.Redis, request_id: str) -> None:
    try:
        client.delete(f"{_PENDING_PREFIX}{request_id}")
        client.zrem(_UNRESOLVED_KEY, request_id)
    except redis.RedisError:
        logger.warning("Could not mark request %s resolved", request_id, exc_info=True)


def mark_cancelled(client: redis.Redis, request_id: str) -> None:
    try:
        client.delete(f"{_PENDING_PREFIX}{request_id}")
        client.zrem(_UNRESOLVED_KEY, request_id)
        client.zadd(_CANCELLED_KEY, {request_id: time.time()})
    except redis.RedisError:
        logger.warning("Could not mark request %s cancelled", request_id, exc_info=True)


def list_pending(client: redis.Redis, now: float | None = None) -> list[dict[str, Any]]:
    """Return unresolved requests; ``stuck`` means the marker already expired."""
    now = now if now is not None else time.time()
    entries = client.zrange(_UNRESOLVED_KEY, 0, -1, withscores=True)
    pending: list[dict[str, Any]] = []
    for request_id, started_at in entries:
        pending.append({
            "request_id": request_id,
            "age_seconds": round(now - float(started_at), 1),
            "stuck": not client.exists(f"{_PENDING_PREFIX}{request_id}"),
        })
    return pending


# ---------------------------------------------------------------------------
# Suggestion history
# ---------------------------------------------------------------------------


def add_suggestion(
    client: redis.Redis,
    player_id: int,
    beatmap_id: int,
    retention: int = DEFAULT_INDEX_CONFIG.suggestion_retention,
    now: float | None = None,
) -> None:
    now = now if now is not None else time.time()
    key = _suggested_key(player_id)
    try:
        client.zadd(key, {str(beatmap_id): now})
        client.zremrangebyscore(key, "-inf", now - retention)
        client.expire(key, retention)
    except redis.RedisError:
        logger.warning("Could not record suggestion %s for player %s", beatmap_id, player_id, exc_info=True)


def recently_suggested(
    client: redis.Redis,
    player_id: int,
    retention: int = DEFAULT_INDEX_CONFIG.suggestion_retention,
    now: float | None = None,
) -> set[int]:
    """Charts suggested to *player_id* within the retention window."""
    now = now if now is not None else time.time()
    try:
        members = client.zrangebyscore(_suggested_key(player_id), now - retention, "+inf")
    except redis.RedisError:
        logger.warning("Could not read suggestions for player %s", player_id, exc_info=True)
        return set()
    return {int(m) for m in members}
