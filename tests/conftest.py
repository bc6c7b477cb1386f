"""Shared fixtures for round_rewarder tests."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import pytest
from pytest_metadata.plugin import metadata_key

from round_rewarder.models.config import DaemonConfig, MonitorConfig, RewardConfig
from round_rewarder.storage.sqlite import SQLiteRewardStore
from round_rewarder.worker import RewardWorker

from tests.mocks import MockChainClient, MockRoundSource, RecordingMonitor

TEST_SECRET = "SBWVJTD3F5ETMVWCNI7MM4HUAPUSCUXXMUEJZJTPRWRJGXW2BF4SVQTK"
TEST_PUBLIC = "GDNAG4KFFVF5HCSGRWZIXZNL2SR2KBGJSHW2A6FI6DZI62XF6IBLO4GD"

BONDING_CONTRACT_ID = "CCEDYFIHUCJFITWEOT7BWUO2HBQQ72L244ZXQ4YNOC6FYRDN3MKDQFK7"
ROUNDS_CONTRACT_ID = "CACBN6G2EPPLAQORDB3LXN3SULGVYBAETFZTNYTNDQ77B7JFRIBT66V2"

WORKER_LOGGER = "round_rewarder.worker"


def pytest_configure(config):
    """Add network info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Stellar Testnet (mocked)"
    meta["Bonding Contract"] = BONDING_CONTRACT_ID
    meta["Rounds Contract"] = ROUNDS_CONTRACT_ID
    meta["Participant Account"] = TEST_PUBLIC


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() holds or fail after timeout."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


def error_records(caplog, logger: str = WORKER_LOGGER) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.name == logger and r.levelno >= logging.ERROR]


def make_test_config(**overrides) -> DaemonConfig:
    """Build a DaemonConfig suitable for testing."""
    defaults = dict(
        error_backoff=1,
        rpc_url="https://soroban-testnet.stellar.org",
        network_passphrase="Test SDF Network ; September 2015",
        bonding_contract_id=BONDING_CONTRACT_ID,
        rounds_contract_id=ROUNDS_CONTRACT_ID,
        keypair_secret=TEST_SECRET,
        db_path=":memory:",
        rewards=RewardConfig(confirm_timeout=1, confirm_poll_interval=0.1, round_poll_interval=1),
        monitor=MonitorConfig(enabled=False),
    )
    defaults.update(overrides)
    return DaemonConfig(**defaults)


@pytest.fixture
def test_config():
    """Default DaemonConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteRewardStore."""
    s = SQLiteRewardStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def calls():
    """Ordered log of chain calls and notifications shared by the mocks."""
    return []


@pytest.fixture
def mock_client(calls):
    return MockChainClient(calls=calls)


@pytest.fixture
def mock_rounds():
    return MockRoundSource(last_round=100)


@pytest.fixture
def monitor(calls):
    return RecordingMonitor(calls=calls)


@pytest.fixture
def worker(mock_client, mock_rounds, monitor):
    return RewardWorker(mock_client, mock_rounds, monitor)


@pytest.fixture
async def running_worker(worker):
    """Worker whose event loop runs in a background task."""
    task = asyncio.create_task(worker.start())
    await wait_until(worker.is_running)
    yield worker
    if worker.is_running():
        await worker.stop()
    await asyncio.wait_for(task, timeout=2)
