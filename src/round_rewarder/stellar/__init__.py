"""Stellar/Soroban integration components."""

from round_rewarder.stellar.client import SorobanChainClient
from round_rewarder.stellar.contract import ContractReader
from round_rewarder.stellar.rounds import SorobanRoundWatcher

__all__ = ["SorobanChainClient", "ContractReader", "SorobanRoundWatcher"]
