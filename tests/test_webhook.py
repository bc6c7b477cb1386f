"""Webhook and fan-out notification sinks."""

from __future__ import annotations

import json
import logging

import httpx

from round_rewarder.monitor import FanoutMonitor, HttpRewardMonitor
from round_rewarder.monitor.webhook import notification_payload

from tests.factories import make_failure, make_notification
from tests.mocks import RecordingMonitor

URL = "https://metrics.example.org/events"


def _capture(status: int = 204):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status)

    return seen, httpx.MockTransport(handler)


def test_payload_for_claim():
    payload = notification_payload(make_notification(round_number=100, reward_pool=9_000), node="orch-1")

    assert payload["event"] == "reward_attempted"
    assert payload["node"] == "orch-1"
    assert payload["round"] == 100
    assert payload["outcome"] == "claimed"
    assert payload["success"] is True
    assert payload["reward_pool"] == 9_000
    assert payload["error"] is None


def test_payload_for_failure():
    payload = notification_payload(make_failure(round_number=7))

    assert payload["success"] is False
    assert payload["replaced"] is True
    assert payload["error"] == "deadline exceeded"
    assert payload["reward_pool"] is None


async def test_posts_json():
    seen, transport = _capture()
    monitor = HttpRewardMonitor(URL, node_name="orch-1", transport=transport)

    await monitor.reward_attempted(make_notification(round_number=100))

    [request] = seen
    assert request.method == "POST"
    assert str(request.url) == URL
    body = json.loads(request.content)
    assert body["round"] == 100
    assert body["node"] == "orch-1"


async def test_http_error_status_is_logged_not_raised(caplog):
    caplog.set_level(logging.WARNING)
    _, transport = _capture(status=503)
    monitor = HttpRewardMonitor(URL, transport=transport)

    await monitor.reward_attempted(make_notification(round_number=100))

    assert any("HTTP 503" in r.getMessage() for r in caplog.records)


async def test_connection_error_is_logged_not_raised(caplog):
    caplog.set_level(logging.WARNING)

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    monitor = HttpRewardMonitor(URL, transport=httpx.MockTransport(handler))

    await monitor.reward_attempted(make_notification(round_number=100))

    assert any("unreachable" in r.getMessage() for r in caplog.records)


async def test_fanout_delivers_to_every_monitor():
    first, second = RecordingMonitor(), RecordingMonitor()
    fanout = FanoutMonitor([first, second])

    notification = make_notification()
    await fanout.reward_attempted(notification)

    assert first.notifications == [notification]
    assert second.notifications == [notification]


async def test_fanout_continues_past_failing_monitor(caplog):
    caplog.set_level(logging.WARNING)
    broken, healthy = RecordingMonitor(fail=True), RecordingMonitor()
    fanout = FanoutMonitor([broken, healthy])

    await fanout.reward_attempted(make_notification())

    assert len(healthy.notifications) == 1
    assert any("monitor down" in r.getMessage() for r in caplog.records)
