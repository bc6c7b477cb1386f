"""Soroban round watcher - polls RPC for NewRound contract events."""

from __future__ import annotations

import asyncio
import logging

from stellar_sdk import SorobanServerAsync, scval, xdr
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.soroban_rpc import EventFilter, EventFilterType, EventInfo

from round_rewarder.errors import RoundSourceError
from round_rewarder.models.chain import RoundEvent
from round_rewarder.stellar.contract import ContractReader

log = logging.getLogger(__name__)

# Topic emitted by the rounds contract: ("NewRound", round: u32)
_TOPIC_NEW_ROUND = scval.to_symbol("NewRound").to_xdr()


def _parse_event(info: EventInfo) -> RoundEvent | None:
    """Decode a NewRound event value (a bare u32 or a struct with ``round``)."""
    try:
        value = scval.to_native(xdr.SCVal.from_xdr(info.value))
    except Exception:
        log.warning("Could not decode value XDR for event %s", info.id)
        return None

    if isinstance(value, dict):
        value = value.get("round")
    if not isinstance(value, int) or isinstance(value, bool):
        log.debug("Ignoring NewRound event %s with value %r", info.id, value)
        return None
    return RoundEvent(round=value, ledger=info.ledger)


class _Subscription:
    """RoundSubscription handed out by SorobanRoundWatcher."""

    def __init__(self, watcher: SorobanRoundWatcher, sink: asyncio.Queue[RoundEvent]) -> None:
        self._watcher = watcher
        self.sink = sink
        self.active = True
        self._error: asyncio.Future = asyncio.get_running_loop().create_future()

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._watcher._remove(self)

    def fail(self, exc: Exception) -> None:
        if not self._error.done():
            self._error.set_result(exc)

    async def wait_error(self) -> Exception:
        # Shielded so a cancelled waiter leaves the future usable.
        return await asyncio.shield(self._error)


class SorobanRoundWatcher:
    """Implements RoundEventSource by polling the rounds contract's events.

    Keeps the last initialized round (seeded by refresh() from
    ``current_round()``) and fans every NewRound event out to all live
    subscriptions, in ledger order. Maintains an event cursor for
    resumption across restarts.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_id: str,
        network_passphrase: str,
        source_address: str,
        poll_interval: float = 5,
        error_backoff: float = 30,
        max_poll_failures: int = 10,
        rpc_timeout: int = 30,
        start_ledger: int | None = None,
    ) -> None:
        self._server = SorobanServerAsync(
            rpc_url, client=AiohttpClient(request_timeout=rpc_timeout),
        )
        self._reader = ContractReader(
            self._server, contract_id, network_passphrase, source_address,
        )
        self._poll_interval = poll_interval
        self._error_backoff = error_backoff
        self._max_poll_failures = max_poll_failures
        self._cursor: str | None = None
        self._start_ledger = start_ledger
        self._filters = [
            EventFilter(
                event_type=EventFilterType.CONTRACT,
                contract_ids=[contract_id],
                topics=[[_TOPIC_NEW_ROUND]],
            )
        ]
        self._last_round = 0
        self._subscriptions: list[_Subscription] = []
        self._running = False
        self._poll_task: asyncio.Task | None = None

    # ── RoundEventSource ──────────────────────────────────

    def last_initialized_round(self) -> int:
        return self._last_round

    def subscribe_rounds(self, sink: asyncio.Queue[RoundEvent]) -> _Subscription:
        sub = _Subscription(self, sink)
        self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: _Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    # ── Cursor ────────────────────────────────────────────

    @property
    def cursor(self) -> str | None:
        return self._cursor

    def set_cursor(self, cursor: str) -> None:
        """Restore cursor from persisted state."""
        self._cursor = cursor

    def get_cursor(self) -> int | None:
        """Ledger of the last processed event, for persistence."""
        if self._cursor is None:
            return None
        # Event IDs / cursors look like "{toid}-{index}"; the store keeps ledgers
        try:
            return int(self._cursor.split("-")[0])
        except (ValueError, IndexError):
            return None

    # ── Lifecycle ─────────────────────────────────────────

    async def refresh(self) -> int:
        """Read current_round() from the contract."""
        raw = await self._reader.call("current_round")
        if raw is not None:
            self._advance(int(raw))
        log.info("Last initialized round: %d", self._last_round)
        return self._last_round

    async def start(self) -> None:
        """Start the background polling task."""
        self._running = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        log.info("Round watcher started (poll_interval=%ss)", self._poll_interval)

    async def stop(self) -> None:
        """Stop polling. Subscriptions stay valid but receive nothing more."""
        self._running = False
        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        log.info("Round watcher stopped")

    async def close(self) -> None:
        await self._server.close()

    # ── Polling ───────────────────────────────────────────

    async def _poll_loop(self) -> None:
        failures = 0
        while self._running:
            try:
                events = await self.poll()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                failures += 1
                log.error(
                    "Round poll failed (%d/%d): %s", failures, self._max_poll_failures, exc,
                )
                if failures >= self._max_poll_failures:
                    self._fail_subscriptions(
                        RoundSourceError(f"round feed failed after {failures} polls: {exc}")
                    )
                    self._running = False
                    break
                try:
                    await asyncio.sleep(self._error_backoff)
                except asyncio.CancelledError:
                    break
                continue

            failures = 0
            self.dispatch(events)

            try:
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break

    async def poll(self) -> list[RoundEvent]:
        """Fetch NewRound events since the last cursor.

        On first call (no cursor), starts from start_ledger or the latest
        ledger reported by RPC.
        """
        if self._cursor:
            response = await self._server.get_events(
                filters=self._filters, cursor=self._cursor, limit=100,
            )
        else:
            start = self._start_ledger
            if start is None:
                latest = await self._server.get_latest_ledger()
                start = latest.sequence
                log.info("No cursor, watching rounds from ledger %d", start)
            response = await self._server.get_events(
                start_ledger=start, filters=self._filters, limit=100,
            )

        events: list[RoundEvent] = []
        for info in response.events:
            if not info.in_successful_contract_call:
                continue
            parsed = _parse_event(info)
            if parsed is not None:
                events.append(parsed)

        if response.events:
            self._cursor = response.events[-1].id
        elif response.cursor:
            self._cursor = response.cursor

        if events:
            log.info("Polled %d NewRound events (cursor: %s)", len(events), self._cursor)
        return events

    def dispatch(self, events: list[RoundEvent]) -> None:
        """Record and fan out round events to every live subscription."""
        for event in events:
            if event.round is not None:
                self._advance(event.round)
            for sub in list(self._subscriptions):
                sub.sink.put_nowait(event)

    def _advance(self, round_number: int) -> None:
        if round_number > self._last_round:
            self._last_round = round_number

    def _fail_subscriptions(self, exc: Exception) -> None:
        for sub in list(self._subscriptions):
            sub.fail(exc)
