"""Reward attempt results and persisted history records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from round_rewarder.models.chain import EarningsPool


class WorkerState(str, Enum):
    """Lifecycle state of the reward worker."""

    IDLE = "idle"
    RUNNING = "running"


class RewardOutcome(str, Enum):
    """Terminal outcome of one claim attempt."""

    CLAIMED = "claimed"
    SUBMIT_FAILED = "submit_failed"
    CONFIRM_FAILED = "confirm_failed"
    REPLACE_FAILED = "replace_failed"
    REPLACEMENT_TIMED_OUT = "replacement_timed_out"
    REPLACEMENT_FAILED = "replacement_failed"


@dataclass
class RewardNotification:
    """Emitted exactly once per completed claim attempt."""

    round: int
    outcome: RewardOutcome
    duration_ms: int
    tx_hash: str | None = None
    replaced: bool = False  # a fee-bump replacement was submitted
    error: str | None = None
    earnings_pool: EarningsPool | None = None

    @property
    def success(self) -> bool:
        return self.outcome is RewardOutcome.CLAIMED


@dataclass
class RewardRecord:
    """A claim attempt as persisted in the state store."""

    id: int
    round: int
    outcome: str
    success: bool
    duration_ms: int
    tx_hash: str | None
    replaced: bool
    error: str | None
    reward_pool: int | None  # stroops
    created_at: str


@dataclass
class RewardSummary:
    """Aggregated claim history."""

    attempts: int = 0
    claimed: int = 0
    failed: int = 0
    replaced: int = 0
    last_claimed_round: int | None = None
    total_reward_pool: int = 0  # stroops, sum over claimed rounds


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    round: int | None
    tx_hash: str | None
    message: str
    created_at: str
