"""Data models for the round_rewarder daemon."""

from round_rewarder.models.chain import (
    ConfirmKind,
    ConfirmResult,
    EarningsPool,
    ParticipantStatus,
    RoundEvent,
    Transaction,
)
from round_rewarder.models.records import (
    ActivityRecord,
    RewardNotification,
    RewardOutcome,
    RewardRecord,
    RewardSummary,
    WorkerState,
)
from round_rewarder.models.config import DaemonConfig, MonitorConfig, RewardConfig

__all__ = [
    "ConfirmKind", "ConfirmResult", "EarningsPool", "ParticipantStatus",
    "RoundEvent", "Transaction",
    "ActivityRecord", "RewardNotification", "RewardOutcome", "RewardRecord",
    "RewardSummary", "WorkerState",
    "DaemonConfig", "MonitorConfig", "RewardConfig",
]
