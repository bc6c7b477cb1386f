"""Configuration models for the daemon."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RewardConfig:
    """Claim, confirmation and round-polling parameters."""

    confirm_timeout: int = 60  # seconds before a pending tx counts as stuck
    confirm_poll_interval: float = 2.0  # seconds between get_transaction calls
    fee_bump_multiplier: float = 10.0  # core only replaces a queued tx at >= 10x the fee
    round_poll_interval: int = 5  # seconds between event polls
    max_poll_failures: int = 10  # consecutive poll errors before the round feed fails


@dataclass
class MonitorConfig:
    """Optional HTTP webhook for reward notifications."""

    enabled: bool = False
    url: str = ""
    timeout: float = 5.0
    node_name: str = ""


@dataclass
class DaemonConfig:
    """Complete daemon configuration."""

    # Daemon
    log_level: str = "info"
    error_backoff: int = 30  # seconds

    # Stellar
    network: str = "testnet"
    rpc_url: str = "https://soroban-testnet.stellar.org"
    network_passphrase: str = "Test SDF Network ; September 2015"
    bonding_contract_id: str = ""  # participant registry + reward()
    rounds_contract_id: str = ""  # emits NewRound events
    keypair_secret: str = ""  # loaded from env var ROUND_REWARDER_SECRET
    base_fee: int = 100  # stroops per operation
    tx_timeout: int = 300  # seconds a submitted tx stays valid
    rpc_timeout: int = 30  # seconds per RPC request

    # Storage
    db_path: str = "~/.round_rewarder/state.db"

    rewards: RewardConfig = field(default_factory=RewardConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
