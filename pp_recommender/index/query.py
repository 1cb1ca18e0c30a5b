from __future__ import annotations

import logging
import math
import time
from collections.abc import Mapping
from typing import Any

import redis
from pydantic import ValidationError

from ..errors import IndexQueryError, InvalidRangeError
from ..ranges.models import RangeResult
from ..recommendations.models import ScoreRecord
from .config import DEFAULT_INDEX_CONFIG, IndexConfig
from .scripts import RANGE_SCAN_LUA
from .store import get_client

logger = logging.getLogger(__name__)


def validate_window(window: Mapping[str, Any] | RangeResult | None) -> tuple[float, float]:
    """Return ``(min, max)`` or raise InvalidRangeError.

    ``min > max`` is not rejected here; such a window simply matches nothing.
    """
    if isinstance(window, RangeResult):
        window = window.window()
    if not isinstance(window, Mapping):
        raise InvalidRangeError(f"Invalid range object: {window!r}")

    bounds: list[float] = []
    for name in ("min", "max"):
        value = window.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidRangeError(f"Range {name} must be numeric, got {value!r}")
        if not math.isfinite(value):
            raise InvalidRangeError(f"Range {name} must be finite, got {value!r}")
        bounds.append(float(value))
    return bounds[0], bounds[1]


class ScoreIndex:
    """Range queries against the PP-sorted score index."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        config: IndexConfig = DEFAULT_INDEX_CONFIG,
    ) -> None:
        self.client = client if client is not None else get_client(config)
        self.config = config
        self._script = None

    @property
    def script(self):
        if self._script is None:
            self._script = self.client.register_script(RANGE_SCAN_LUA)
        return self._script

    def _scan(
        self,
        low: float,
        high: float,
        *,
        require_mods: bool,
        bpm: float | None,
        discipline: str | None,
        offset: int,
        limit: int,
        max_accepted: int,
    ) -> tuple[int, list[str]]:
        raw = self.script(
            keys=[self.config.scores_key],
            args=[
                repr(low),
                repr(high),
                "mods" if require_mods else "any",
                "none" if bpm is None else repr(float(bpm)),
                repr(float(self.config.bpm_margin)),
                str(self.config.precision_cap),
                discipline or "any",
                str(offset),
                str(limit),
                str(max_accepted),
            ],
        )
        if not raw:
            return 0, []
        return int(raw[0]), [str(key) for key in raw[1:]]

    def scan_window(
        self,
        low: float,
        high: float,
        *,
        require_mods: bool = False,
        bpm: float | None = None,
        discipline: str | None = "osu",
    ) -> list[str]:
        """Single script call over the whole window."""
        _, keys = self._scan(
            low, high,
            require_mods=require_mods, bpm=bpm, discipline=discipline,
            offset=0, limit=self.config.scan_limit, max_accepted=self.config.max_results,
        )
        return keys

    def scan_window_chunked(
        self,
        low: float,
        high: float,
        *,
        require_mods: bool = False,
        bpm: float | None = None,
        discipline: str | None = "osu",
    ) -> list[str]:
        """Page through the window ``chunk_size`` entries at a time."""
        chunk = self.config.chunk_size
        accepted: dict[str, None] = {}
        offset = 0
        chunks = 0
        while len(accepted) < self.config.max_results:
            scanned, keys = self._scan(
                low, high,
                require_mods=require_mods, bpm=bpm, discipline=discipline,
                offset=offset, limit=chunk,
                max_accepted=self.config.max_results - len(accepted),
            )
            chunks += 1
            for key in keys:
                accepted.setdefault(key, None)
            if scanned < chunk:
                break
            offset += chunk
        logger.debug("Scanned [%s, %s] in %d chunk(s), %d key(s) accepted", low, high, chunks, len(accepted))
        return list(accepted)[: self.config.max_results]

    def hydrate(self, keys: list[str]) -> list[ScoreRecord]:
        if not keys:
            return []
        pipe = self.client.pipeline(transaction=False)
        for key in keys:
            pipe.hgetall(key)
        rows = pipe.execute()

        records: list[ScoreRecord] = []
        for key, data in zip(keys, rows):
            if not data:
                continue
            try:
                records.append(ScoreRecord.from_hash(key, data))
            except ValidationError:
                logger.warning("Skipping malformed index entry %s", key)
        return records

    def find_scores_by_pp_range(
        self,
        window: Mapping[str, Any] | RangeResult | None,
        *,
        require_mods: bool = False,
        bpm: float | None = None,
        event_id: str | None = None,
        discipline: str | None = "osu",
        chunked: bool = True,
    ) -> list[ScoreRecord]:
        """Return hydrated index records whose PP falls inside *window*."""
        low, high = validate_window(window)
        if low > high:
            return []

        start = time.perf_counter()
        try:
            if chunked:
                keys = self.scan_window_chunked(
                    low, high, require_mods=require_mods, bpm=bpm, discipline=discipline,
                )
            else:
                keys = self.scan_window(
                    low, high, require_mods=require_mods, bpm=bpm, discipline=discipline,
                )
            records = self.hydrate(keys)
        except redis.RedisError as exc:
            raise IndexQueryError(f"[{event_id}] score index query failed: {exc}") from exc

        cap = self.config.precision_cap
        records = [
            r for r in records
            if low <= r.pp <= high
            and r.precision <= cap
            and (not require_mods or r.mods != 0)
        ]
        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
        logger.info("[%s] %d record(s) in [%s, %s] (%sms)", event_id, len(records), low, high, elapsed_ms)
        return records
