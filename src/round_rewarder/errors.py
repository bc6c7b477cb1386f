"""Exception hierarchy for the reward daemon."""

from __future__ import annotations


class RewarderError(Exception):
    """Base class for all round_rewarder errors."""


class WorkerStateError(RewarderError):
    """Lifecycle method called in the wrong state. Nothing was changed."""


class AlreadyRunningError(WorkerStateError):
    def __init__(self) -> None:
        super().__init__("reward worker is already running")


class NotRunningError(WorkerStateError):
    def __init__(self) -> None:
        super().__init__("reward worker is not running")


class ChainError(RewarderError):
    """A chain operation failed."""


class SubmissionError(ChainError):
    """reward() could not be built, signed or sent. No transaction exists."""


class ReplacementError(ChainError):
    """A fee-bump replacement could not be built, signed or sent."""


class ContractCallError(ChainError):
    """A read-only contract call failed in simulation."""


class RoundSourceError(RewarderError):
    """The round event feed failed and will deliver no more events."""
