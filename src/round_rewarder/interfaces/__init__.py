"""Protocol interfaces for the reward worker's collaborators."""

from round_rewarder.interfaces.chain import ChainClient
from round_rewarder.interfaces.monitor import RewardMonitor
from round_rewarder.interfaces.rounds import RoundEventSource, RoundSubscription

__all__ = [
    "ChainClient",
    "RewardMonitor",
    "RoundEventSource", "RoundSubscription",
]
