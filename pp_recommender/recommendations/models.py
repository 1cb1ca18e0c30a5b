from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_GAIN_THRESHOLD = 20.0
_TOP_SIZE = 100
_WEIGHT_DECAY = 0.95


class ScoreRecord(BaseModel):
    """A community score stored in the PP index."""

    model_config = ConfigDict(frozen=True)

    score_id: str
    beatmap_id: int
    pp: float
    mods: int = 0
    precision: int = 9
    bpm: float = 0.0
    discipline: str = "osu"
    date: datetime | None = None
    title: str | None = None
    artist: str | None = None
    version: str | None = None
    stars: float | None = None
    length: int | None = None

    @field_validator("mods", mode="before")
    @classmethod
    def _blank_mods(cls, value: Any) -> Any:
        if value in (None, "", False):
            return 0
        return value

    @field_validator("precision", mode="before")
    @classmethod
    def _missing_precision(cls, value: Any) -> Any:
        if value in (None, ""):
            return 9
        return value

    @field_validator("bpm", mode="before")
    @classmethod
    def _missing_bpm(cls, value: Any) -> Any:
        if value in (None, ""):
            return 0.0
        return value

    @classmethod
    def from_hash(cls, key: str, data: Mapping[str, Any]) -> ScoreRecord:
        """Build a record from the Redis hash stored under *key*."""
        fields = dict(data)
        fields.pop("score_id", None)
        if "type" in fields and "discipline" not in fields:
            fields["discipline"] = fields.pop("type")
        for optional in ("date", "title", "artist", "version", "stars", "length"):
            if fields.get(optional) == "":
                fields.pop(optional)
        return cls(score_id=key, **fields)

    def to_hash(self) -> dict[str, str]:
        """Flatten the record into string fields for the Redis hash."""
        out: dict[str, str] = {}
        for name, value in self.model_dump(exclude={"score_id"}).items():
            if value is None:
                continue
            if name == "discipline":
                name = "type"
            out[name] = value.isoformat() if isinstance(value, datetime) else str(value)
        return out


class PlayerProfile(BaseModel):
    id: int
    username: str
    locale: str = "EN"
    pp: float = Field(default=0.0, ge=0.0)


class TopScore(BaseModel):
    """One entry of a player's best-performance list."""

    beatmap_id: int
    pp: float
    date: datetime
    accuracy: float = 0.0
    mods: list[str] = Field(default_factory=list)
    stars: float = 0.0

    @field_validator("mods", mode="before")
    @classmethod
    def _split_mods(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [m.strip() for m in value.split(",") if m.strip()]
        return value


class GainCandidate(BaseModel):
    value: float
    rank: int
    gain: float
    new_total: float


def _weighted_total(values: list[float]) -> float:
    return sum(v * _WEIGHT_DECAY ** i for i, v in enumerate(values))


class TopPerformanceSet(BaseModel):
    chart_ids: set[int] = Field(default_factory=set)
    raw_scores: list[TopScore] = Field(default_factory=list)
    candidate_gains: list[GainCandidate] = Field(default_factory=list)

    @classmethod
    def from_scores(cls, scores: Iterable[TopScore]) -> TopPerformanceSet:
        """Build the exclusion set and the PP gain table from best scores.

        A hypothetical score value is kept as a gain candidate when adding
        it to the 0.95-weighted top 100 raises the weighted total by at
        least 20 PP.
        """
        raw = list(scores)
        values = sorted((s.pp for s in raw), reverse=True)[:_TOP_SIZE]
        base_total = _weighted_total(values)
        floor = values[_TOP_SIZE - 1] if len(values) >= _TOP_SIZE else None

        gains: list[GainCandidate] = []
        pp = 5
        while pp <= 2000:
            if floor is None or pp > floor:
                rank = sum(1 for v in values if v > pp)
                hypothetical = (values[:rank] + [float(pp)] + values[rank:])[:_TOP_SIZE]
                new_total = _weighted_total(hypothetical)
                gain = new_total - base_total
                if rank < _TOP_SIZE and gain >= _GAIN_THRESHOLD:
                    gains.append(GainCandidate(
                        value=float(pp),
                        rank=rank + 1,
                        gain=round(gain, 2),
                        new_total=round(new_total, 2),
                    ))
            pp += 1 if pp < 500 else (5 if pp < 1000 else 10)

        return cls(
            chart_ids={s.beatmap_id for s in raw},
            raw_scores=raw,
            candidate_gains=gains,
        )


class ChartMetadata(BaseModel):
    """Display metadata for the winning chart, fetched after selection."""

    beatmap_id: int
    beatmapset_id: int | None = None
    title: str | None = None
    artist: str | None = None
    version: str | None = None
    creator: str | None = None
    stars: float | None = None
    length: int | None = None
    bpm: float | None = None
    ar: float | None = None
    od: float | None = None
    cs: float | None = None
    hp: float | None = None
