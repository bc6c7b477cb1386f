"""Read-only contract calls answered by RPC simulation."""

from __future__ import annotations

import logging
from typing import Any

from stellar_sdk import SorobanServerAsync, TransactionBuilder, scval, xdr

from round_rewarder.errors import ContractCallError

log = logging.getLogger(__name__)


class ContractReader:
    """Invokes view functions on a Soroban contract without submitting.

    The call is built as an ordinary invocation from ``source_address``,
    simulated, and the first return value is decoded to native Python
    (ints, bools, strs, dicts for structs/maps, None for void).
    """

    def __init__(
        self,
        server: SorobanServerAsync,
        contract_id: str,
        network_passphrase: str,
        source_address: str,
        base_fee: int = 100,
    ) -> None:
        self._server = server
        self._contract_id = contract_id
        self._passphrase = network_passphrase
        self._source_address = source_address
        self._base_fee = base_fee

    @property
    def contract_id(self) -> str:
        return self._contract_id

    async def call(self, function_name: str, *parameters: xdr.SCVal) -> Any:
        """Simulate ``function_name(*parameters)`` and return its decoded result.

        Raises ContractCallError if the RPC call or the simulation fails.
        """
        try:
            source = await self._server.load_account(self._source_address)
            tx = (
                TransactionBuilder(source, self._passphrase, base_fee=self._base_fee)
                .append_invoke_contract_function_op(
                    contract_id=self._contract_id,
                    function_name=function_name,
                    parameters=list(parameters),
                )
                .set_timeout(30)
                .build()
            )
            response = await self._server.simulate_transaction(tx)
        except Exception as exc:
            raise ContractCallError(f"{function_name}: {exc}") from exc

        if response.error:
            raise ContractCallError(f"{function_name} simulation failed: {response.error}")
        if not response.results:
            log.debug("%s returned no result", function_name)
            return None

        return scval.to_native(xdr.SCVal.from_xdr(response.results[0].xdr))
