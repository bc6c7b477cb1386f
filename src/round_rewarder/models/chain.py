"""Chain-facing value types: participant status, transactions, confirmations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class RoundEvent:
    """Signals that a new round was initialized.

    The worker treats this purely as a trigger; eligibility is always
    re-read from the chain.
    """

    round: int | None = None
    ledger: int | None = None


@dataclass(frozen=True)
class ParticipantStatus:
    """On-chain registration state of the local participant."""

    address: str
    active: bool
    last_reward_round: int


@dataclass(frozen=True)
class EarningsPool:
    """Per-round earnings bookkeeping for a participant."""

    round: int
    total_stake: int = 0
    reward_pool: int = 0  # stroops
    fee_pool: int = 0  # stroops


@dataclass(frozen=True)
class Transaction:
    """Handle for a submitted transaction."""

    hash: str
    envelope_xdr: str = ""
    fee: int = 0  # stroops
    submitted_at: str = ""
    replaces: str | None = None  # hash of the stuck transaction this one bumps


class ConfirmKind(str, Enum):
    """Outcome of waiting for a transaction to land."""

    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"  # confirmation deadline elapsed
    FAILED = "failed"  # reverted, rejected, or otherwise not going to land


@dataclass(frozen=True)
class ConfirmResult:
    kind: ConfirmKind
    tx_hash: str
    error: str | None = None

    @property
    def confirmed(self) -> bool:
        return self.kind is ConfirmKind.CONFIRMED

    @property
    def timed_out(self) -> bool:
        return self.kind is ConfirmKind.TIMED_OUT
