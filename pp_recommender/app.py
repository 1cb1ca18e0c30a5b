from __future__ import annotations

import time
import uuid
from functools import lru_cache

from fastapi import FastAPI, HTTPException

from .analytics.aggregator import REQUEST_EVENT, compute_analytics
from .analytics.store import get_events, record_event
from .index.store import list_pending
from .progression.cache import cached_progression, get_cache_stats
from .progression.models import ProgressionResult
from .ranges.algorithms import get_algorithm
from .recommendations.config import DEFAULT_ENGINE_CONFIG
from .recommendations.models import PlayerProfile
from .workers.messages import (
    RecommendationRequest,
    RecommendationResponse,
    RequestEvent,
    WorkerInput,
)
from .workers.recommend import spawn_recommendation
from .workers.services import RecommendationServices, load_services_factory

app = FastAPI(title="PP Recommendation API", version="1.0.0")


@lru_cache(maxsize=1)
def _build_services(factory_path: str) -> RecommendationServices:
    return load_services_factory(factory_path)()


def get_services() -> RecommendationServices:
    factory_path = DEFAULT_ENGINE_CONFIG.services_factory
    if not factory_path:
        raise HTTPException(status_code=503, detail="No services factory configured")
    return _build_services(factory_path)


def _lookup_player(services: RecommendationServices, username: str) -> PlayerProfile:
    player = services.get_user(username)
    if player is None:
        raise HTTPException(status_code=404, detail=f"Unknown player: {username}")
    return player


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/recommendations", response_model=RecommendationResponse)
def recommendations(body: RecommendationRequest) -> RecommendationResponse:
    if body.algorithm:
        try:
            get_algorithm(body.algorithm)
        except KeyError:
            raise HTTPException(status_code=422, detail=f"Unknown algorithm: {body.algorithm}")

    services = get_services()
    player = _lookup_player(services, body.username)

    request_id = uuid.uuid4().hex[:12]
    event = RequestEvent(id=request_id, **body.model_dump())
    payload = WorkerInput(request_event=event, player=player)

    start = time.perf_counter()
    messages = spawn_recommendation(
        payload,
        DEFAULT_ENGINE_CONFIG.services_factory,
        DEFAULT_ENGINE_CONFIG.worker_timeout,
    )
    elapsed_ms = round((time.perf_counter() - start) * 1000, 1)

    last = messages[-1] if messages else None
    record_event(REQUEST_EVENT, {
        "request_id": request_id,
        "player_id": player.id,
        "discipline": body.discipline,
        "status": last.status if last else "error",
        "tier": last.tier if last else None,
        "algorithm": last.algorithm if last else None,
        "elapsed_ms": elapsed_ms,
    })
    return RecommendationResponse(request_id=request_id, messages=messages)


@app.get("/progression/{username}", response_model=ProgressionResult)
def progression(username: str) -> ProgressionResult:
    services = get_services()
    player = _lookup_player(services, username)
    history = {d: s.raw_scores for d, s in services.get_top_scores(player).items() if s.raw_scores}
    return cached_progression(
        services.store, player.id, history, services.index_config.progression_ttl,
    )


# ── Operator endpoints ───────────────────────────────────────────────────


@app.get("/pending")
def pending() -> dict:
    entries = list_pending(get_services().store)
    return {
        "total": len(entries),
        "stuck": sum(1 for e in entries if e["stuck"]),
        "requests": entries,
    }


@app.get("/analytics")
def analytics() -> dict:
    return compute_analytics(get_events())


@app.get("/cache/stats")
def cache_stats() -> dict:
    return get_cache_stats(get_services().store)
