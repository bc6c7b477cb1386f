"""Daemon wiring: store, round feed and worker lifecycle."""

from __future__ import annotations

import asyncio

import pytest

from round_rewarder.daemon import RewarderDaemon
from round_rewarder.errors import RoundSourceError
from round_rewarder.models.config import MonitorConfig
from round_rewarder.monitor import FanoutMonitor, HttpRewardMonitor
from round_rewarder.storage.sqlite import SQLiteRewardStore
from round_rewarder.worker import RewardWorker

from tests.conftest import make_test_config, wait_until
from tests.mocks import MockChainClient, MockRoundSource, RecordingMonitor


@pytest.fixture
async def daemon(tmp_path):
    """RewarderDaemon with the chain and round feed swapped for mocks."""
    d = RewarderDaemon(make_test_config(db_path=str(tmp_path / "state.db")))
    await d.client.close()
    await d.rounds.close()

    d.client = MockChainClient()
    d.rounds = MockRoundSource(last_round=100)
    d.recorder = RecordingMonitor()
    d.worker = RewardWorker(d.client, d.rounds, FanoutMonitor([d.store, d.recorder]))
    return d


async def _reopen(tmp_path) -> SQLiteRewardStore:
    store = SQLiteRewardStore(str(tmp_path / "state.db"))
    await store.initialize()
    return store


async def test_builds_webhook_monitor_when_enabled(tmp_path):
    cfg = make_test_config(
        db_path=str(tmp_path / "state.db"),
        monitor=MonitorConfig(enabled=True, url="https://metrics.example.org"),
    )
    d = RewarderDaemon(cfg)

    monitors = d.worker._monitor._monitors
    assert monitors[0] is d.store
    assert isinstance(monitors[1], HttpRewardMonitor)

    await d.client.close()
    await d.rounds.close()


async def test_claims_and_records_round(daemon, tmp_path):
    task = asyncio.create_task(daemon.start())
    await wait_until(daemon.worker.is_running)
    assert daemon.rounds.started

    daemon.rounds.emit(100)
    await wait_until(lambda: len(daemon.recorder.notifications) == 1)
    daemon.rounds.set_cursor("777-0")

    await daemon.stop()
    await asyncio.wait_for(task, timeout=2)

    assert daemon.rounds.started is False
    assert daemon.rounds.closed
    assert daemon.client.closed

    store = await _reopen(tmp_path)
    try:
        [attempt] = await store.get_recent_attempts()
        assert attempt.round == 100
        assert attempt.success
        assert await store.get_cursor() == 777
        events = [a.event_type for a in await store.get_recent_activity()]
        assert events == ["daemon_stopped", "reward_claimed", "daemon_started"]
    finally:
        await store.close()


async def test_restores_saved_cursor(daemon, tmp_path):
    seed = await _reopen(tmp_path)
    await seed.set_cursor(555)
    await seed.close()

    task = asyncio.create_task(daemon.start())
    await wait_until(daemon.worker.is_running)

    assert daemon.rounds.get_cursor() == 555

    await daemon.stop()
    await asyncio.wait_for(task, timeout=2)


async def test_stop_before_worker_starts(daemon):
    await daemon.stop()

    await asyncio.wait_for(daemon.start(), timeout=2)

    assert not daemon.worker.is_running()
    assert daemon.client.submit_calls == []


async def test_round_feed_failure_shuts_daemon_down(daemon, tmp_path):
    task = asyncio.create_task(daemon.start())
    await wait_until(daemon.worker.is_running)

    daemon.rounds.subscription.fail(RoundSourceError("round feed failed after 10 polls"))
    await asyncio.wait_for(task, timeout=2)

    assert daemon.rounds.closed
    store = await _reopen(tmp_path)
    try:
        events = [a.event_type for a in await store.get_recent_activity()]
        assert events[0] == "daemon_stopped"
    finally:
        await store.close()
