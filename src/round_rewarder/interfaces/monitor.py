"""RewardMonitor protocol - receives one notification per claim attempt."""

from __future__ import annotations

from typing import Protocol

from round_rewarder.models.records import RewardNotification


class RewardMonitor(Protocol):
    """Sink for reward attempt notifications (metrics, history, alerts)."""

    async def reward_attempted(self, notification: RewardNotification) -> None:
        ...
