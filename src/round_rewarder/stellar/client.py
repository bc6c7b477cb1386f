"""Soroban chain client - reward() submission, confirmation, and fee-bump replacement."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Any

from stellar_sdk import (
    FeeBumpTransactionEnvelope,
    Keypair,
    SorobanServerAsync,
    TransactionBuilder,
    TransactionEnvelope,
    scval,
)
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.exceptions import PrepareTransactionException
from stellar_sdk.soroban_rpc import GetTransactionStatus, SendTransactionStatus

from round_rewarder.errors import ChainError, ReplacementError, SubmissionError
from round_rewarder.models.chain import (
    ConfirmKind,
    ConfirmResult,
    EarningsPool,
    ParticipantStatus,
    Transaction,
)
from round_rewarder.stellar.contract import ContractReader

log = logging.getLogger(__name__)

_REJECTED = (SendTransactionStatus.ERROR, SendTransactionStatus.TRY_AGAIN_LATER)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _resource_fee(envelope: TransactionEnvelope) -> int:
    data = envelope.transaction.soroban_data
    return data.resource_fee.int64 if data is not None else 0


def bump_fees(
    inner_fee: int, resource_fee: int, ops: int, multiplier: float,
) -> tuple[int, int]:
    """Per-operation base fee and total fee for a fee bump around a stuck tx.

    Only the inclusion part of the fee (total minus Soroban resource fee)
    is multiplied; the resource fee is carried over unchanged. The bump
    pays for ``ops + 1`` operations and never less per operation than
    the inner transaction did.
    """
    inclusion = inner_fee - resource_fee
    target = max(math.ceil(inclusion * multiplier), inclusion + 1)
    base_fee = max(math.ceil(target / (ops + 1)), math.ceil(inclusion / ops))
    return base_fee, base_fee * (ops + 1) + resource_fee


def _field(raw: Any, name: str, default: Any = 0) -> Any:
    """Read a struct field from a decoded contract map."""
    if isinstance(raw, dict):
        return raw.get(name, default)
    return getattr(raw, name, default)


class SorobanChainClient:
    """Implements ChainClient against a bonding contract on Soroban.

    The bonding contract is expected to expose:
      reward(caller: Address)
      get_transcoder(addr: Address) -> Option<{active: bool, last_reward_round: u32}>
      get_earnings_pool(addr: Address, round: u32) -> {total_stake, reward_pool, fee_pool}

    Stuck transactions are replaced with a fee-bump envelope around the
    original inner transaction. Both share a sequence number, so at most
    one of them can ever be applied.
    """

    def __init__(
        self,
        keypair: Keypair,
        rpc_url: str,
        network_passphrase: str,
        contract_id: str,
        base_fee: int = 100,
        tx_timeout: int = 300,
        confirm_timeout: float = 60,
        confirm_poll_interval: float = 2.0,
        fee_bump_multiplier: float = 10.0,
        rpc_timeout: int = 30,
    ) -> None:
        if fee_bump_multiplier <= 1:
            raise ValueError("fee_bump_multiplier must be greater than 1")

        self._keypair = keypair
        self._public_key = keypair.public_key
        self._passphrase = network_passphrase
        self._contract_id = contract_id
        self._base_fee = base_fee
        self._tx_timeout = tx_timeout
        self._confirm_timeout = confirm_timeout
        self._confirm_poll_interval = confirm_poll_interval
        self._fee_bump_multiplier = fee_bump_multiplier

        self._server = SorobanServerAsync(
            rpc_url, client=AiohttpClient(request_timeout=rpc_timeout),
        )
        self._reader = ContractReader(
            self._server, contract_id, network_passphrase, self._public_key, base_fee,
        )

    async def close(self) -> None:
        """Close the underlying aiohttp session."""
        await self._server.close()

    # ── Reads ─────────────────────────────────────────────

    def account(self) -> str:
        return self._public_key

    async def get_participant_status(self, address: str) -> ParticipantStatus:
        raw = await self._reader.call("get_transcoder", scval.to_address(address))
        if raw is None:
            # Not registered: never eligible.
            return ParticipantStatus(address=address, active=False, last_reward_round=0)
        return ParticipantStatus(
            address=address,
            active=bool(_field(raw, "active", False)),
            last_reward_round=int(_field(raw, "last_reward_round", 0)),
        )

    async def get_earnings_pool_for_round(self, address: str, round_number: int) -> EarningsPool:
        raw = await self._reader.call(
            "get_earnings_pool", scval.to_address(address), scval.to_uint32(round_number),
        )
        if raw is None:
            return EarningsPool(round=round_number)
        return EarningsPool(
            round=round_number,
            total_stake=int(_field(raw, "total_stake")),
            reward_pool=int(_field(raw, "reward_pool")),
            fee_pool=int(_field(raw, "fee_pool")),
        )

    # ── Submission ────────────────────────────────────────

    async def submit_reward(self) -> Transaction:
        """Build, simulate, sign, and send reward().

        Raises SubmissionError on any failure before the network accepted
        the transaction into its pending set.
        """
        log.info("Submitting reward for %s", self._public_key[:16])

        try:
            source = await self._server.load_account(self._public_key)
            tx = (
                TransactionBuilder(source, self._passphrase, base_fee=self._base_fee)
                .append_invoke_contract_function_op(
                    contract_id=self._contract_id,
                    function_name="reward",
                    parameters=[scval.to_address(self._public_key)],
                )
                .set_timeout(self._tx_timeout)
                .build()
            )
            tx = await self._server.prepare_transaction(tx)
            tx.sign(self._keypair)
            return await self._send(tx, fee=tx.transaction.fee)

        except PrepareTransactionException as exc:
            log.warning("reward simulation failed: %s", exc)
            raise SubmissionError(f"simulation_failed: {exc}") from exc
        except ChainError as exc:
            raise SubmissionError(str(exc)) from exc
        except Exception as exc:
            log.warning("reward unexpected error: %s", exc)
            raise SubmissionError(str(exc)) from exc

    async def replace_transaction(self, tx: Transaction) -> Transaction:
        """Wrap the stuck transaction in a fee bump paying a higher fee.

        Raises ReplacementError if the bump cannot be built or is rejected.
        """
        try:
            inner = TransactionEnvelope.from_xdr(tx.envelope_xdr, self._passphrase)
            bump_base_fee, total_fee = bump_fees(
                inner.transaction.fee,
                _resource_fee(inner),
                len(inner.transaction.operations),
                self._fee_bump_multiplier,
            )
            bump = TransactionBuilder.build_fee_bump_transaction(
                fee_source=self._keypair,
                base_fee=bump_base_fee,
                inner_transaction_envelope=inner,
                network_passphrase=self._passphrase,
            )
            bump.sign(self._keypair)
            log.info(
                "Replacing tx %s with fee bump (fee %d -> %d)",
                tx.hash[:16], inner.transaction.fee, total_fee,
            )
            return await self._send(bump, fee=total_fee, replaces=tx.hash)

        except ChainError as exc:
            raise ReplacementError(str(exc)) from exc
        except Exception as exc:
            log.warning("fee bump unexpected error for %s: %s", tx.hash[:16], exc)
            raise ReplacementError(str(exc)) from exc

    async def _send(
        self,
        envelope: TransactionEnvelope | FeeBumpTransactionEnvelope,
        fee: int,
        replaces: str | None = None,
    ) -> Transaction:
        response = await self._server.send_transaction(envelope)
        if response.status in _REJECTED:
            raise ChainError(
                f"send_transaction {response.status.value}: {response.error_result_xdr or '?'}"
            )

        log.debug("Sent tx %s (status=%s)", response.hash[:16], response.status.value)
        return Transaction(
            hash=response.hash,
            envelope_xdr=envelope.to_xdr(),
            fee=fee,
            submitted_at=_now(),
            replaces=replaces,
        )

    # ── Confirmation ──────────────────────────────────────

    async def check_transaction(self, tx: Transaction) -> ConfirmResult:
        """Poll until tx is applied, fails, or the confirmation deadline passes.

        For a fee bump the replaced transaction is watched too; if it lands
        first the reward is claimed all the same.
        """
        try:
            return await asyncio.wait_for(
                self._poll_transaction(tx), timeout=self._confirm_timeout,
            )
        except asyncio.TimeoutError:
            log.debug("tx %s not confirmed after %ss", tx.hash[:16], self._confirm_timeout)
            return ConfirmResult(
                kind=ConfirmKind.TIMED_OUT,
                tx_hash=tx.hash,
                error=f"not confirmed after {self._confirm_timeout}s",
            )

    async def _poll_transaction(self, tx: Transaction) -> ConfirmResult:
        hashes = [tx.hash] + ([tx.replaces] if tx.replaces else [])
        while True:
            for tx_hash in hashes:
                try:
                    response = await self._server.get_transaction(tx_hash)
                except Exception as exc:
                    log.debug("get_transaction(%s) failed: %s", tx_hash[:16], exc)
                    continue

                if response.status == GetTransactionStatus.SUCCESS:
                    return ConfirmResult(kind=ConfirmKind.CONFIRMED, tx_hash=tx_hash)
                if response.status == GetTransactionStatus.FAILED and tx_hash == tx.hash:
                    return ConfirmResult(
                        kind=ConfirmKind.FAILED,
                        tx_hash=tx_hash,
                        error=f"tx_failed: {response.result_xdr or '?'}",
                    )

            await asyncio.sleep(self._confirm_poll_interval)
