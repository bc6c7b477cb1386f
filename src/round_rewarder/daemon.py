"""Main daemon - wires the round watcher, chain client and reward worker together."""

from __future__ import annotations

import asyncio
import logging
import signal

from stellar_sdk import Keypair

from round_rewarder.interfaces.monitor import RewardMonitor
from round_rewarder.models.config import DaemonConfig
from round_rewarder.monitor import FanoutMonitor, HttpRewardMonitor
from round_rewarder.stellar.client import SorobanChainClient
from round_rewarder.stellar.rounds import SorobanRoundWatcher
from round_rewarder.storage.sqlite import SQLiteRewardStore
from round_rewarder.worker import RewardWorker

log = logging.getLogger(__name__)


def build_chain_client(cfg: DaemonConfig, keypair: Keypair) -> SorobanChainClient:
    return SorobanChainClient(
        keypair=keypair,
        rpc_url=cfg.rpc_url,
        network_passphrase=cfg.network_passphrase,
        contract_id=cfg.bonding_contract_id,
        base_fee=cfg.base_fee,
        tx_timeout=cfg.tx_timeout,
        confirm_timeout=cfg.rewards.confirm_timeout,
        confirm_poll_interval=cfg.rewards.confirm_poll_interval,
        fee_bump_multiplier=cfg.rewards.fee_bump_multiplier,
        rpc_timeout=cfg.rpc_timeout,
    )


def build_round_watcher(cfg: DaemonConfig, source_address: str) -> SorobanRoundWatcher:
    return SorobanRoundWatcher(
        rpc_url=cfg.rpc_url,
        contract_id=cfg.rounds_contract_id,
        network_passphrase=cfg.network_passphrase,
        source_address=source_address,
        poll_interval=cfg.rewards.round_poll_interval,
        error_backoff=cfg.error_backoff,
        max_poll_failures=cfg.rewards.max_poll_failures,
        rpc_timeout=cfg.rpc_timeout,
    )


class RewarderDaemon:
    """Long-running reward claimer.

    Watches for round initialization and claims the participant's reward
    each round. Every attempt is recorded in the local store and, when
    configured, posted to a monitoring webhook.
    """

    def __init__(self, cfg: DaemonConfig) -> None:
        self._cfg = cfg

        keypair = Keypair.from_secret(cfg.keypair_secret)
        self._public_key = keypair.public_key

        self.store = SQLiteRewardStore(cfg.db_path)
        self.client = build_chain_client(cfg, keypair)
        self.rounds = build_round_watcher(cfg, self._public_key)

        monitors: list[RewardMonitor] = [self.store]
        if cfg.monitor.enabled:
            monitors.append(HttpRewardMonitor(
                cfg.monitor.url,
                timeout=cfg.monitor.timeout,
                node_name=cfg.monitor.node_name or self._public_key[:16],
            ))
        self.worker = RewardWorker(self.client, self.rounds, FanoutMonitor(monitors))
        self._shutdown = asyncio.Event()

    async def start(self) -> None:
        """Initialize components and run the reward worker until stopped."""
        log.info("Starting round_rewarder daemon")
        log.info("  Address: %s", self._public_key)
        log.info("  Bonding contract: %s", self._cfg.bonding_contract_id)
        log.info("  Rounds contract: %s", self._cfg.rounds_contract_id)
        log.info("  RPC: %s", self._cfg.rpc_url)

        await self.store.initialize()

        # Resume the round feed where the last run left off
        saved_ledger = await self.store.get_cursor()
        if saved_ledger:
            self.rounds.set_cursor(f"{saved_ledger}-0")
            log.info("Restored cursor: ledger %d", saved_ledger)

        try:
            await self.rounds.refresh()
            await self.rounds.start()
            await self.store.log_activity(
                "daemon_started", "Daemon started",
                round_number=self.rounds.last_initialized_round(),
            )
            await self.worker.start(self._shutdown)
        finally:
            await self.rounds.stop()
            ledger = self.rounds.get_cursor()
            if ledger:
                await self.store.set_cursor(ledger)
            await self.store.log_activity("daemon_stopped", "Daemon stopped")
            await self.rounds.close()
            await self.client.close()
            await self.store.close()
            log.info("Daemon shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        # Covers a stop that arrives before the worker is up
        self._shutdown.set()
        if self.worker.is_running():
            await self.worker.stop()


async def run_daemon(cfg: DaemonConfig) -> None:
    """Entry point for running the daemon."""
    daemon = RewarderDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
