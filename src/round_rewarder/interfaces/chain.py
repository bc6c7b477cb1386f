"""ChainClient protocol - everything the reward worker needs from the chain."""

from __future__ import annotations

from typing import Protocol

from round_rewarder.models.chain import (
    ConfirmResult,
    EarningsPool,
    ParticipantStatus,
    Transaction,
)


class ChainClient(Protocol):
    """Reads participant state and submits reward transactions."""

    def account(self) -> str:
        """Address of the local participant."""
        ...

    async def get_participant_status(self, address: str) -> ParticipantStatus:
        ...

    async def get_earnings_pool_for_round(self, address: str, round_number: int) -> EarningsPool:
        """Bookkeeping only. Never used to decide whether to claim."""
        ...

    async def submit_reward(self) -> Transaction:
        """Build, sign, and send reward(). Raises SubmissionError."""
        ...

    async def check_transaction(self, tx: Transaction) -> ConfirmResult:
        """Wait for tx to land, up to the client's own confirmation deadline.

        Never raises: the outcome is reported through ConfirmResult.kind.
        """
        ...

    async def replace_transaction(self, tx: Transaction) -> Transaction:
        """Resubmit a stuck tx with a higher fee. Raises ReplacementError."""
        ...
