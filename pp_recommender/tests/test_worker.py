from __future__ import annotations

import json
import random
from unittest.mock import MagicMock, patch

import pytest

from pp_recommender.alerts import send_alert
from pp_recommender.errors import IndexQueryError
from pp_recommender.recommendations.models import (
    ChartMetadata,
    PlayerProfile,
    ScoreRecord,
    TopPerformanceSet,
)
from pp_recommender.workers.messages import RequestEvent, WorkerInput, WorkerMessage
from pp_recommender.workers.recommend import run_recommendation, spawn_recommendation, worker_main
from pp_recommender.workers.services import RecommendationServices, load_services_factory


def _payload(locale="EN", **event_fields):
    fields = {"id": "req42", "username": "Puppy"}
    fields.update(event_fields)
    return WorkerInput(
        request_event=RequestEvent(**fields),
        player=PlayerProfile(id=7, username="Puppy", locale=locale, pp=200.0),
    )


def _store():
    store = MagicMock()
    store.get.return_value = None
    store.zrangebyscore.return_value = []
    return store


def _services(records, top=None):
    index = MagicMock()
    index.find_scores_by_pp_range.return_value = records
    return RecommendationServices(
        get_user=MagicMock(),
        get_top_scores=MagicMock(return_value={"osu": top or TopPerformanceSet()}),
        get_chart_metadata=MagicMock(
            return_value=ChartMetadata(beatmap_id=55, title="Blue Zenith", artist="xi", version="FOUR DIMENSIONS", stars=7.84, length=141),
        ),
        index=index,
        store=_store(),
        alert=MagicMock(),
    )


def _record(beatmap_id=55, pp=210.0, precision=2):
    return ScoreRecord(score_id=f"score:{beatmap_id}", beatmap_id=beatmap_id, pp=pp, precision=precision)


def test_found_reply_and_bookkeeping():
    services = _services([_record()])
    messages = run_recommendation(_payload(), services, rng=random.Random(1))

    assert len(messages) == 1
    message = messages[0]
    assert message.success is True
    assert message.status == "found"
    assert message.beatmap_id == 55
    assert message.request_id == "req42"
    assert message.tier == "strict"
    assert message.algorithm == "Conservative"
    assert "I found this beatmap" in message.response
    assert "Blue Zenith" in message.response
    assert "2:21" in message.response

    services.get_chart_metadata.assert_called_once_with(55)
    suggested = [c for c in services.store.zadd.call_args_list if c[0][0] == "user:7:suggested"]
    assert list(suggested[0][0][1]) == ["55"]
    services.store.delete.assert_any_call("pending:req42")
    services.alert.assert_not_called()


def test_top_scores_are_excluded():
    top = TopPerformanceSet(chart_ids={55})
    messages = run_recommendation(_payload(), _services([_record()], top=top))
    assert messages[0].status == "not_found"
    assert messages[0].success is True


def test_recently_suggested_charts_are_excluded():
    services = _services([_record()])
    services.store.zrangebyscore.return_value = ["55"]
    messages = run_recommendation(_payload(), services)
    assert messages[0].status == "not_found"


def test_not_found_reply_is_localized():
    services = _services([])
    messages = run_recommendation(_payload(locale="FR"), services)

    assert messages[0].success is True
    assert messages[0].beatmap_id is None
    assert messages[0].response == "Je suis désolé mais je n'ai pas trouvé de beatmap avec ces critères."
    services.get_chart_metadata.assert_not_called()


def test_failure_is_reported_and_cancelled():
    services = _services([])
    services.index.find_scores_by_pp_range.side_effect = IndexQueryError("index down")
    messages = run_recommendation(_payload(), services)

    assert messages[0].success is False
    assert messages[0].status == "error"
    assert "req42" in messages[0].response
    services.alert.assert_called_once()
    assert "req42" in services.alert.call_args[0][0]
    cancelled = [c for c in services.store.zadd.call_args_list if c[0][0] == "cancelled:pending"]
    assert len(cancelled) == 1


def test_requested_algorithm_is_forwarded():
    services = _services([_record(pp=280.0)])
    messages = run_recommendation(_payload(algorithm="Aggressive", target_pp=200.0), services)
    assert messages[0].algorithm == "Aggressive"
    assert messages[0].tier is None
    assert "Target rankup 200pp" in messages[0].response


# ---------------------------------------------------------------------------
# Process boundary
# ---------------------------------------------------------------------------


def test_worker_main_sends_messages_and_closes():
    services = _services([_record()])
    conn = MagicMock()
    with patch("pp_recommender.workers.recommend.load_services_factory", return_value=lambda: services):
        worker_main(conn, _payload().model_dump_json(), "tests:factory")

    sent = json.loads(conn.send.call_args[0][0])
    assert sent["request_id"] == "req42"
    assert sent["success"] is True
    conn.close.assert_called_once()


def test_worker_main_reports_startup_failure():
    conn = MagicMock()
    with patch("pp_recommender.workers.recommend.load_services_factory", side_effect=ImportError("nope")):
        worker_main(conn, _payload().model_dump_json(), "missing:factory")

    sent = WorkerMessage.model_validate_json(conn.send.call_args[0][0])
    assert sent.success is False
    assert sent.status == "error"


def _fake_context(receiver):
    context = MagicMock()
    sender = MagicMock()
    context.Pipe.return_value = (receiver, sender)
    process = context.Process.return_value
    process.is_alive.return_value = False
    return context, sender, process


def test_spawn_collects_messages_until_eof():
    reply = WorkerMessage(username="Puppy", response="hi", request_id="req42", success=True)
    receiver = MagicMock()
    receiver.poll.return_value = True
    receiver.recv.side_effect = [reply.model_dump_json(), EOFError()]
    context, sender, process = _fake_context(receiver)

    with patch("pp_recommender.workers.recommend._MP_CONTEXT", context):
        messages = spawn_recommendation(_payload(), "pkg:factory", timeout=5)

    assert messages == [reply]
    process.start.assert_called_once()
    sender.close.assert_called_once()
    receiver.close.assert_called_once()
    process.terminate.assert_not_called()


def test_spawn_terminates_on_timeout():
    receiver = MagicMock()
    receiver.poll.return_value = False
    context, _, process = _fake_context(receiver)

    with patch("pp_recommender.workers.recommend._MP_CONTEXT", context):
        messages = spawn_recommendation(_payload(locale="FR"), "pkg:factory", timeout=0.01)

    process.terminate.assert_called_once()
    assert len(messages) == 1
    assert messages[0].status == "timeout"
    assert messages[0].success is False
    assert "req42" in messages[0].response


# ---------------------------------------------------------------------------
# Services factory
# ---------------------------------------------------------------------------


def test_load_services_factory_accepts_both_notations():
    assert load_services_factory("pp_recommender.alerts:send_alert") is send_alert
    assert load_services_factory("pp_recommender.alerts.send_alert") is send_alert


def test_load_services_factory_requires_a_path():
    with pytest.raises(ValueError):
        load_services_factory("")
