"""Reward notification sinks."""

from __future__ import annotations

import logging

from round_rewarder.interfaces.monitor import RewardMonitor
from round_rewarder.models.records import RewardNotification
from round_rewarder.monitor.webhook import HttpRewardMonitor

log = logging.getLogger(__name__)


class FanoutMonitor:
    """Forwards each notification to several monitors, in order."""

    def __init__(self, monitors: list[RewardMonitor]) -> None:
        self._monitors = list(monitors)

    async def reward_attempted(self, notification: RewardNotification) -> None:
        for monitor in self._monitors:
            try:
                await monitor.reward_attempted(notification)
            except Exception as exc:
                log.warning(
                    "%s failed for round %d: %s",
                    type(monitor).__name__, notification.round, exc,
                )


__all__ = ["FanoutMonitor", "HttpRewardMonitor"]
