"""Config loading: defaults, TOML, env overrides, validation."""

from __future__ import annotations

import pytest

from round_rewarder.config import NETWORK_PASSPHRASES, load_config

from tests.factories import TOML_CONFIG

ENV_VARS = (
    "SECRET", "NETWORK", "RPC_URL", "BONDING_CONTRACT_ID",
    "ROUNDS_CONTRACT_ID", "MONITOR_URL", "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(f"ROUND_REWARDER_{name}", raising=False)


@pytest.fixture
def toml_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(TOML_CONFIG.format(db_path=tmp_path / "state.db"))
    return path


def test_defaults_without_file():
    cfg = load_config()

    assert cfg.network == "testnet"
    assert cfg.network_passphrase == NETWORK_PASSPHRASES["testnet"]
    assert cfg.rewards.confirm_timeout == 60
    assert cfg.rewards.fee_bump_multiplier == 10.0
    assert cfg.monitor.enabled is False
    assert cfg.keypair_secret == ""
    assert "~" not in cfg.db_path
    assert cfg.db_path.endswith("state.db")


def test_missing_file_falls_back_to_defaults(tmp_path):
    cfg = load_config(tmp_path / "absent.toml")
    assert cfg.rpc_url == "https://soroban-testnet.stellar.org"


def test_toml_values(toml_file, tmp_path):
    cfg = load_config(toml_file)

    assert cfg.log_level == "debug"
    assert cfg.error_backoff == 7
    assert cfg.network == "mainnet"
    assert cfg.network_passphrase == NETWORK_PASSPHRASES["mainnet"]
    assert cfg.rpc_url == "https://rpc.example.org"
    assert cfg.bonding_contract_id == "CBONDINGCONTRACTFROMTOML"
    assert cfg.rounds_contract_id == "CROUNDSCONTRACTFROMTOML"
    assert cfg.base_fee == 250
    assert cfg.rewards.confirm_timeout == 45
    assert cfg.rewards.confirm_poll_interval == 1.5
    assert cfg.rewards.fee_bump_multiplier == 3.0
    assert cfg.rewards.round_poll_interval == 12
    assert cfg.db_path == str(tmp_path / "state.db")
    assert cfg.monitor.enabled is True
    assert cfg.monitor.url == "https://metrics.example.org/events"
    assert cfg.monitor.node_name == "orch-1"


def test_env_overrides_toml(toml_file, monkeypatch):
    monkeypatch.setenv("ROUND_REWARDER_SECRET", "SSECRETFROMENV")
    monkeypatch.setenv("ROUND_REWARDER_NETWORK", "testnet")
    monkeypatch.setenv("ROUND_REWARDER_RPC_URL", "https://env-rpc.example.org")
    monkeypatch.setenv("ROUND_REWARDER_BONDING_CONTRACT_ID", "CBONDINGFROMENV")
    monkeypatch.setenv("ROUND_REWARDER_ROUNDS_CONTRACT_ID", "CROUNDSFROMENV")
    monkeypatch.setenv("ROUND_REWARDER_LOG_LEVEL", "warning")

    cfg = load_config(toml_file)

    assert cfg.keypair_secret == "SSECRETFROMENV"
    assert cfg.network == "testnet"
    assert cfg.network_passphrase == NETWORK_PASSPHRASES["testnet"]
    assert cfg.rpc_url == "https://env-rpc.example.org"
    assert cfg.bonding_contract_id == "CBONDINGFROMENV"
    assert cfg.rounds_contract_id == "CROUNDSFROMENV"
    assert cfg.log_level == "warning"


def test_monitor_url_env_enables_monitor(monkeypatch):
    monkeypatch.setenv("ROUND_REWARDER_MONITOR_URL", "https://hooks.example.org")

    cfg = load_config()

    assert cfg.monitor.enabled is True
    assert cfg.monitor.url == "https://hooks.example.org"


def test_explicit_passphrase_wins(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        '[stellar]\nnetwork = "futurenet"\n'
        'network_passphrase = "Test SDF Future Network ; October 2022"\n'
    )

    cfg = load_config(path)

    assert cfg.network == "futurenet"
    assert cfg.network_passphrase == "Test SDF Future Network ; October 2022"


def test_multiplier_must_exceed_one(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[rewards]\nfee_bump_multiplier = 1.0\n")

    with pytest.raises(ValueError, match="fee_bump_multiplier"):
        load_config(path)


def test_enabled_monitor_requires_url(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[monitor]\nenabled = true\n")

    with pytest.raises(ValueError, match="monitor.url"):
        load_config(path)


def test_memory_db_path_kept(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[storage]\ndb_path = ":memory:"\n')

    assert load_config(path).db_path == ":memory:"
