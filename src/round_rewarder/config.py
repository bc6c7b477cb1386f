"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from round_rewarder.models.config import DaemonConfig, MonitorConfig, RewardConfig

NETWORK_PASSPHRASES = {
    "testnet": "Test SDF Network ; September 2015",
    "mainnet": "Public Global Stellar Network ; September 2015",
}


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "ROUND_REWARDER_",
) -> DaemonConfig:
    """Load daemon configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (ROUND_REWARDER_SECRET, etc.)
        2. TOML config file
        3. Defaults from DaemonConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = DaemonConfig()

    # ── Daemon section ─────────────────────────────────────
    daemon = raw.get("daemon", {})
    if v := daemon.get("log_level"):
        cfg.log_level = str(v)
    if v := daemon.get("error_backoff"):
        cfg.error_backoff = int(v)

    # ── Stellar section ────────────────────────────────────
    stellar = raw.get("stellar", {})
    if v := stellar.get("network"):
        cfg.network = str(v)
    if v := stellar.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := stellar.get("bonding_contract_id"):
        cfg.bonding_contract_id = str(v)
    if v := stellar.get("rounds_contract_id"):
        cfg.rounds_contract_id = str(v)
    if v := stellar.get("keypair_secret"):
        cfg.keypair_secret = str(v)
    if v := stellar.get("base_fee"):
        cfg.base_fee = int(v)
    if v := stellar.get("tx_timeout"):
        cfg.tx_timeout = int(v)
    if v := stellar.get("rpc_timeout"):
        cfg.rpc_timeout = int(v)

    # ── Rewards section ────────────────────────────────────
    rewards = raw.get("rewards", {})
    defaults = RewardConfig()
    cfg.rewards = RewardConfig(
        confirm_timeout=int(rewards.get("confirm_timeout", defaults.confirm_timeout)),
        confirm_poll_interval=float(
            rewards.get("confirm_poll_interval", defaults.confirm_poll_interval)
        ),
        fee_bump_multiplier=float(
            rewards.get("fee_bump_multiplier", defaults.fee_bump_multiplier)
        ),
        round_poll_interval=int(
            rewards.get("round_poll_interval", defaults.round_poll_interval)
        ),
        max_poll_failures=int(rewards.get("max_poll_failures", defaults.max_poll_failures)),
    )

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Monitor section ────────────────────────────────────
    monitor = raw.get("monitor", {})
    cfg.monitor = MonitorConfig(
        enabled=bool(monitor.get("enabled", False)),
        url=str(monitor.get("url", "")),
        timeout=float(monitor.get("timeout", 5.0)),
        node_name=str(monitor.get("node_name", "")),
    )

    # ── Environment variable overrides (highest priority) ──
    if secret := os.environ.get(f"{env_prefix}SECRET"):
        cfg.keypair_secret = secret
    if net := os.environ.get(f"{env_prefix}NETWORK"):
        cfg.network = net
    if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
        cfg.rpc_url = rpc
    if cid := os.environ.get(f"{env_prefix}BONDING_CONTRACT_ID"):
        cfg.bonding_contract_id = cid
    if cid := os.environ.get(f"{env_prefix}ROUNDS_CONTRACT_ID"):
        cfg.rounds_contract_id = cid
    if url := os.environ.get(f"{env_prefix}MONITOR_URL"):
        cfg.monitor.url = url
        cfg.monitor.enabled = True
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level

    # Passphrase follows the network unless set explicitly
    if v := stellar.get("network_passphrase"):
        cfg.network_passphrase = str(v)
    elif cfg.network in NETWORK_PASSPHRASES:
        cfg.network_passphrase = NETWORK_PASSPHRASES[cfg.network]

    if cfg.rewards.fee_bump_multiplier <= 1:
        raise ValueError("rewards.fee_bump_multiplier must be greater than 1")
    if cfg.monitor.enabled and not cfg.monitor.url:
        raise ValueError("monitor.enabled requires monitor.url")

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg
