from __future__ import annotations

from pydantic import BaseModel, Field

from ..recommendations.models import PlayerProfile


class RequestEvent(BaseModel):
    """One parsed recommendation command."""

    id: str
    username: str
    mods: list[str] = Field(default_factory=list)
    allow_other_mods: bool = False
    bpm: float | None = None
    target_pp: float | None = None
    algorithm: str | None = None
    discipline: str = "osu"


class WorkerInput(BaseModel):
    request_event: RequestEvent
    player: PlayerProfile


class WorkerMessage(BaseModel):
    username: str
    response: str
    request_id: str
    success: bool
    beatmap_id: int | None = None
    status: str = "found"
    algorithm: str | None = None
    tier: str | None = None
    elapsed_ms: float | None = None


class RecommendationRequest(BaseModel):
    """HTTP body for POST /recommendations."""

    username: str
    mods: list[str] = Field(default_factory=list)
    allow_other_mods: bool = False
    bpm: float | None = Field(default=None, gt=0)
    target_pp: float | None = Field(default=None, ge=0)
    algorithm: str | None = None
    discipline: str = "osu"


class RecommendationResponse(BaseModel):
    request_id: str
    messages: list[WorkerMessage]
