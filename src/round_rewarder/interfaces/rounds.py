"""RoundEventSource protocol - delivers new-round notifications."""

from __future__ import annotations

import asyncio
from typing import Protocol

from round_rewarder.models.chain import RoundEvent


class RoundSubscription(Protocol):
    """Handle returned by subscribe_rounds()."""

    def unsubscribe(self) -> None:
        """Stop delivering events to the sink. Safe to call more than once."""
        ...

    async def wait_error(self) -> Exception:
        """Resolve with the error that ended the feed. Never resolves otherwise."""
        ...


class RoundEventSource(Protocol):
    """Watches the chain for round initialization."""

    def subscribe_rounds(self, sink: asyncio.Queue[RoundEvent]) -> RoundSubscription:
        """Push a RoundEvent into sink for every newly initialized round."""
        ...

    def last_initialized_round(self) -> int:
        """Most recent round known to be initialized."""
        ...
