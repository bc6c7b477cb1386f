"""Reward worker - claims the per-round reward and sees its transaction through."""

from __future__ import annotations

import asyncio
import logging
import time

from round_rewarder.errors import (
    AlreadyRunningError,
    NotRunningError,
    ReplacementError,
    SubmissionError,
)
from round_rewarder.interfaces.chain import ChainClient
from round_rewarder.interfaces.monitor import RewardMonitor
from round_rewarder.interfaces.rounds import RoundEventSource, RoundSubscription
from round_rewarder.models.chain import ConfirmKind, EarningsPool, RoundEvent
from round_rewarder.models.records import RewardNotification, RewardOutcome, WorkerState

log = logging.getLogger(__name__)


class RewardWorker:
    """Claims the participant's reward for every newly initialized round.

    Rounds are handled one at a time, in arrival order, and each claim
    attempt runs to a terminal outcome before the next one starts. A
    reward transaction that misses the chain client's confirmation
    deadline is replaced exactly once with a fee bump; if the replacement
    does not land either, the round is given up.
    """

    def __init__(
        self,
        client: ChainClient,
        rounds: RoundEventSource,
        monitor: RewardMonitor | None = None,
    ) -> None:
        self._client = client
        self._rounds = rounds
        self._monitor = monitor
        self._state = WorkerState.IDLE
        self._stop_event: asyncio.Event | None = None
        self._finished: asyncio.Event | None = None

    # ── Lifecycle ─────────────────────────────────────────

    @property
    def state(self) -> WorkerState:
        return self._state

    def is_running(self) -> bool:
        return self._state is WorkerState.RUNNING

    async def start(self, shutdown: asyncio.Event | None = None) -> None:
        """Subscribe to rounds and process them until stopped.

        Blocks until stop() is called, ``shutdown`` is set, or the round
        feed fails. Raises AlreadyRunningError if the worker is running.
        If a previous loop is still finishing an attempt, the new one
        waits for it to exit before subscribing.
        """
        # Check-and-set must not straddle an await.
        if self._state is WorkerState.RUNNING:
            raise AlreadyRunningError()
        self._state = WorkerState.RUNNING
        previous = self._finished
        stop_event = asyncio.Event()
        finished = asyncio.Event()
        self._stop_event = stop_event
        self._finished = finished
        subscription: RoundSubscription | None = None

        try:
            if previous is not None and not previous.is_set():
                log.debug("Waiting for previous reward loop to exit")
                await previous.wait()
                if stop_event.is_set():
                    return

            queue: asyncio.Queue[RoundEvent] = asyncio.Queue()
            subscription = self._rounds.subscribe_rounds(queue)
            log.info("Reward worker started")
            await self._event_loop(queue, subscription, stop_event, shutdown)
        finally:
            if subscription is not None:
                subscription.unsubscribe()
            # stop() already moved us to IDLE unless we exited on our own.
            if self._stop_event is stop_event:
                self._state = WorkerState.IDLE
                self._stop_event = None
            finished.set()
            log.info("Reward worker stopped")

    async def stop(self, wait: bool = True) -> None:
        """Stop the event loop.

        The worker reports IDLE as soon as this is called. With ``wait``
        (the default) it also returns only after the loop has exited, so
        no chain call can happen afterwards. An in-flight claim attempt is
        allowed to reach its terminal outcome first.
        """
        if self._state is not WorkerState.RUNNING:
            raise NotRunningError()
        self._state = WorkerState.IDLE
        stop_event, finished = self._stop_event, self._finished
        # _finished stays so the next start() can wait on it.
        self._stop_event = None
        log.info("Reward worker stop requested")

        if stop_event is not None:
            stop_event.set()
        if wait and finished is not None:
            await finished.wait()

    async def _event_loop(
        self,
        queue: asyncio.Queue[RoundEvent],
        subscription: RoundSubscription,
        stop_event: asyncio.Event,
        shutdown: asyncio.Event | None,
    ) -> None:
        stop_wait = asyncio.ensure_future(stop_event.wait())
        error_wait = asyncio.ensure_future(subscription.wait_error())
        waiters = {stop_wait, error_wait}
        if shutdown is not None:
            waiters.add(asyncio.ensure_future(shutdown.wait()))
        next_round: asyncio.Future | None = None

        try:
            while True:
                next_round = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait(
                    waiters | {next_round}, return_when=asyncio.FIRST_COMPLETED,
                )

                if error_wait in done:
                    log.error("Round subscription failed: %s", error_wait.result())
                    return
                if done & waiters:
                    return

                event = next_round.result()
                next_round = None
                try:
                    await self.try_reward(event)
                except Exception as exc:
                    log.error("Reward attempt error: %s", exc, exc_info=True)
        finally:
            for waiter in waiters:
                waiter.cancel()
            if next_round is not None:
                next_round.cancel()

    # ── Claim sequence ────────────────────────────────────

    async def try_reward(self, event: RoundEvent | None = None) -> RewardNotification | None:
        """Claim the current round's reward if the participant is eligible.

        Returns the attempt's notification, or None when the round was
        skipped because the participant is inactive or already claimed.
        """
        address = self._client.account()
        status = await self._client.get_participant_status(address)
        current_round = self._rounds.last_initialized_round()

        if not status.active:
            log.debug("Participant %s inactive, skipping round %d", address[:16], current_round)
            return None
        if status.last_reward_round >= current_round:
            log.debug(
                "Round %d already rewarded (last_reward_round=%d)",
                current_round, status.last_reward_round,
            )
            return None

        return await self._claim(current_round)

    async def _claim(self, round_number: int) -> RewardNotification:
        """Submit → confirm → (replace once → confirm)."""
        started = time.monotonic()

        try:
            tx = await self._client.submit_reward()
        except SubmissionError as exc:
            return await self._finish(round_number, started, RewardOutcome.SUBMIT_FAILED, error=str(exc))
        log.debug("Submitted reward for round %d (tx=%s)", round_number, tx.hash[:16])

        result = await self._client.check_transaction(tx)
        if result.kind is ConfirmKind.CONFIRMED:
            return await self._finish(round_number, started, RewardOutcome.CLAIMED, tx_hash=tx.hash)
        if result.kind is ConfirmKind.FAILED:
            return await self._finish(
                round_number, started, RewardOutcome.CONFIRM_FAILED,
                tx_hash=tx.hash, error=result.error,
            )

        log.info(
            "Reward tx %s for round %d not confirmed before deadline, replacing",
            tx.hash[:16], round_number,
        )
        try:
            replacement = await self._client.replace_transaction(tx)
        except ReplacementError as exc:
            return await self._finish(
                round_number, started, RewardOutcome.REPLACE_FAILED,
                tx_hash=tx.hash, error=str(exc),
            )

        result = await self._client.check_transaction(replacement)
        if result.kind is ConfirmKind.CONFIRMED:
            outcome = RewardOutcome.CLAIMED
        elif result.kind is ConfirmKind.TIMED_OUT:
            outcome = RewardOutcome.REPLACEMENT_TIMED_OUT
        else:
            outcome = RewardOutcome.REPLACEMENT_FAILED
        return await self._finish(
            round_number, started, outcome,
            tx_hash=replacement.hash,
            replaced=True,
            error=None if result.confirmed else (result.error or "replacement not confirmed"),
        )

    async def _finish(
        self,
        round_number: int,
        started: float,
        outcome: RewardOutcome,
        tx_hash: str | None = None,
        replaced: bool = False,
        error: str | None = None,
    ) -> RewardNotification:
        """Log the terminal outcome and notify the monitor, exactly once."""
        notification = RewardNotification(
            round=round_number,
            outcome=outcome,
            duration_ms=int((time.monotonic() - started) * 1000),
            tx_hash=tx_hash,
            replaced=replaced,
            error=error,
        )

        if notification.success:
            notification.earnings_pool = await self._fetch_earnings_pool(round_number)
            log.info(
                "Claimed reward for round %d (tx=%s, %dms%s)",
                round_number,
                tx_hash[:16] if tx_hash else "?",
                notification.duration_ms,
                ", replaced" if replaced else "",
            )
        else:
            log.error(
                "Reward for round %d failed: %s (tx=%s): %s",
                round_number,
                outcome.value,
                tx_hash[:16] if tx_hash else "-",
                error,
            )

        if self._monitor is not None:
            try:
                await self._monitor.reward_attempted(notification)
            except Exception as exc:
                log.warning("Reward monitor failed for round %d: %s", round_number, exc)

        return notification

    async def _fetch_earnings_pool(self, round_number: int) -> EarningsPool | None:
        try:
            return await self._client.get_earnings_pool_for_round(self._client.account(), round_number)
        except Exception as exc:
            log.warning("Could not fetch earnings pool for round %d: %s", round_number, exc)
            return None
