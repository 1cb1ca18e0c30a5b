from __future__ import annotations

import logging
import multiprocessing
import random
import time
from multiprocessing.connection import Connection

from ..index.store import add_suggestion, mark_cancelled, mark_pending, mark_resolved, recently_suggested
from ..progression.cache import cached_progression
from ..recommendations.config import DEFAULT_ENGINE_CONFIG
from ..recommendations.messages import (
    found_message,
    internal_error_message,
    not_found_message,
    timeout_message,
)
from ..recommendations.models import TopPerformanceSet
from ..recommendations.orchestrator import Orchestrator, SearchContext, resolve_target
from .messages import WorkerInput, WorkerMessage
from .services import RecommendationServices, load_services_factory

logger = logging.getLogger(__name__)

_MP_CONTEXT = multiprocessing.get_context("spawn")


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)


def run_recommendation(
    payload: WorkerInput,
    services: RecommendationServices,
    rng: random.Random | None = None,
) -> list[WorkerMessage]:
    """Run the whole pipeline for one request and word the reply."""
    event = payload.request_event
    player = payload.player
    config = services.config
    index_config = services.index_config
    start = time.perf_counter()

    mark_pending(services.store, event.id, index_config.pending_ttl)
    try:
        top_sets = services.get_top_scores(player)
        top = top_sets.get(event.discipline) or TopPerformanceSet()
        history = {d: s.raw_scores for d, s in top_sets.items() if s.raw_scores}

        suggested = recently_suggested(services.store, player.id, index_config.suggestion_retention)
        progression = (
            cached_progression(services.store, player.id, history, index_config.progression_ttl)
            if history else None
        )
        computed_target = None
        if event.target_pp is None:
            computed_target = resolve_target(
                None, top.raw_scores, progression, top.candidate_gains, event.discipline, config,
            )

        context = SearchContext(
            event_id=event.id,
            rating=player.pp,
            top_scores=top.raw_scores,
            progression=progression,
            exclude_chart_ids=top.chart_ids,
            suggested_ids=suggested,
            mods=event.mods,
            allow_other_mods=event.allow_other_mods,
            bpm=event.bpm,
            target_pp=event.target_pp,
            computed_target=computed_target,
            discipline=event.discipline,
        )
        outcome = Orchestrator(services.index, config=config).run(context, event.algorithm)
        selected = outcome.selected(rng, config.selection_tiers)

        if selected is None:
            logger.info("[%s] nothing found for %s", event.id, player.username)
            message = WorkerMessage(
                username=event.username,
                response=not_found_message(player.locale),
                request_id=event.id,
                success=True,
                status="not_found",
                elapsed_ms=_elapsed_ms(start),
            )
        else:
            chart = services.get_chart_metadata(selected.beatmap_id)
            target = event.target_pp if event.target_pp is not None else computed_target
            add_suggestion(services.store, player.id, selected.beatmap_id, index_config.suggestion_retention)
            logger.info(
                "[%s] suggesting %s (%.0fpp) to %s via %s",
                event.id, selected.beatmap_id, selected.pp, player.username, outcome.algorithm,
            )
            message = WorkerMessage(
                username=event.username,
                response=found_message(player.locale, selected, chart, target),
                request_id=event.id,
                success=True,
                beatmap_id=selected.beatmap_id,
                algorithm=outcome.algorithm,
                tier=outcome.tier.value if outcome.tier else None,
                elapsed_ms=_elapsed_ms(start),
            )
        mark_resolved(services.store, event.id)
        return [message]
    except Exception as exc:
        logger.error(
            "[%s] recommendation failed for %s (%s)", event.id, player.username, player.id, exc_info=True,
        )
        services.alert(f"Request {event.id} for {player.username} failed: {exc!r}", "recommend")
        mark_cancelled(services.store, event.id)
        return [WorkerMessage(
            username=event.username,
            response=internal_error_message(player.locale, event.id),
            request_id=event.id,
            success=False,
            status="error",
            elapsed_ms=_elapsed_ms(start),
        )]


def worker_main(conn: Connection, payload_json: str, factory_path: str) -> None:
    """Child process entry point: one request in, messages out, then exit."""
    logging.basicConfig(
        level=DEFAULT_ENGINE_CONFIG.log_level,
        format="%(asctime)s %(processName)s %(name)s %(levelname)s %(message)s",
    )
    payload = WorkerInput.model_validate_json(payload_json)
    event = payload.request_event
    try:
        services = load_services_factory(factory_path)()
        messages = run_recommendation(payload, services)
    except Exception:
        logger.error("[%s] worker could not start", event.id, exc_info=True)
        messages = [WorkerMessage(
            username=event.username,
            response=internal_error_message(payload.player.locale, event.id),
            request_id=event.id,
            success=False,
            status="error",
        )]
    try:
        for message in messages:
            conn.send(message.model_dump_json())
    finally:
        conn.close()


def spawn_recommendation(
    payload: WorkerInput,
    factory_path: str,
    timeout: float,
) -> list[WorkerMessage]:
    """Run *payload* in a fresh process and collect its messages.

    The child is terminated when it exceeds *timeout* seconds; the player
    then gets a timeout reply instead.
    """
    event = payload.request_event
    receiver, sender = _MP_CONTEXT.Pipe(duplex=False)
    process = _MP_CONTEXT.Process(
        target=worker_main,
        args=(sender, payload.model_dump_json(), factory_path),
        name=f"recommend-{event.id}",
        daemon=True,
    )
    process.start()
    sender.close()

    messages: list[WorkerMessage] = []
    deadline = time.monotonic() + timeout
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0 or not receiver.poll(remaining):
                logger.warning("[%s] worker exceeded %ss, terminating", event.id, timeout)
                process.terminate()
                messages.append(WorkerMessage(
                    username=event.username,
                    response=timeout_message(payload.player.locale, event.id),
                    request_id=event.id,
                    success=False,
                    status="timeout",
                    elapsed_ms=round(timeout * 1000, 1),
                ))
                break
            try:
                raw = receiver.recv()
            except EOFError:
                break
            messages.append(WorkerMessage.model_validate_json(raw))
    finally:
        receiver.close()
        process.join(timeout=1)
        if process.is_alive():
            process.kill()
    return messages
