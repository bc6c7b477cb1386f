"""HTTP webhook monitor - posts reward notifications to a metrics endpoint."""

from __future__ import annotations

import logging

import httpx

from round_rewarder.models.records import RewardNotification

log = logging.getLogger(__name__)


def notification_payload(notification: RewardNotification, node: str = "") -> dict:
    """JSON body sent for a reward attempt."""
    pool = notification.earnings_pool
    return {
        "event": "reward_attempted",
        "node": node,
        "round": notification.round,
        "outcome": notification.outcome.value,
        "success": notification.success,
        "duration_ms": notification.duration_ms,
        "tx_hash": notification.tx_hash,
        "replaced": notification.replaced,
        "error": notification.error,
        "reward_pool": pool.reward_pool if pool else None,
    }


class HttpRewardMonitor:
    """Implements RewardMonitor by POSTing JSON to a configured URL.

    Delivery is best-effort: failures are logged and dropped, never raised
    back into the reward worker.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        node_name: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._node_name = node_name
        self._transport = transport

    async def reward_attempted(self, notification: RewardNotification) -> None:
        payload = notification_payload(notification, self._node_name)
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=min(self._timeout, 5)),
                transport=self._transport,
            ) as client:
                resp = await client.post(self._url, json=payload)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            log.warning(
                "Monitor webhook rejected round %d: HTTP %d",
                notification.round, exc.response.status_code,
            )
        except httpx.HTTPError as exc:
            log.warning("Monitor webhook unreachable (%s): %s", self._url, exc)
        else:
            log.debug("Posted round %d notification to %s", notification.round, self._url)
