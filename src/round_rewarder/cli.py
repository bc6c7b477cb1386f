"""CLI entry point for the round_rewarder daemon."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from stellar_sdk import Keypair

from round_rewarder.config import load_config
from round_rewarder.daemon import build_chain_client, build_round_watcher, run_daemon
from round_rewarder.errors import ChainError
from round_rewarder.storage.sqlite import SQLiteRewardStore
from round_rewarder.worker import RewardWorker

STROOPS_PER_XLM = 10_000_000


def _xlm(stroops: int) -> str:
    return f"{stroops / STROOPS_PER_XLM:.7f} XLM"


def _require_secret(cfg):
    """Exit with error if no keypair secret is configured."""
    if not cfg.keypair_secret:
        click.echo("Error: No keypair secret configured.", err=True)
        click.echo("Set ROUND_REWARDER_SECRET env var or keypair_secret in config.", err=True)
        sys.exit(1)


def _require_contracts(cfg):
    """Exit with error if contract IDs are missing."""
    missing = [
        name for name, value in (
            ("bonding_contract_id", cfg.bonding_contract_id),
            ("rounds_contract_id", cfg.rounds_contract_id),
        ) if not value
    ]
    if missing:
        click.echo(f"Error: No {', '.join(missing)} configured.", err=True)
        click.echo("Set them in the [stellar] config section or via env vars.", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """round_rewarder - claims the per-round reward for a staked participant."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    cfg = load_config(config_path)
    ctx.obj["config"] = cfg

    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the reward daemon."""
    cfg = ctx.obj["config"]
    _require_secret(cfg)
    _require_contracts(cfg)

    click.echo(f"Starting round_rewarder daemon ({cfg.network})")
    asyncio.run(run_daemon(cfg))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show daemon configuration."""
    cfg = ctx.obj["config"]
    click.echo(f"Network:         {cfg.network}")
    click.echo(f"RPC URL:         {cfg.rpc_url}")
    click.echo(f"Bonding:         {cfg.bonding_contract_id or '(not set)'}")
    click.echo(f"Rounds:          {cfg.rounds_contract_id or '(not set)'}")
    click.echo(f"Confirm timeout: {cfg.rewards.confirm_timeout}s")
    click.echo(f"Fee bump:        x{cfg.rewards.fee_bump_multiplier}")
    click.echo(f"Monitor:         {cfg.monitor.url if cfg.monitor.enabled else '(disabled)'}")
    click.echo(f"DB path:         {cfg.db_path}")
    click.echo(f"Secret:          {'***configured***' if cfg.keypair_secret else '(not set)'}")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Query on-chain participant status and the current round."""
    cfg = ctx.obj["config"]
    _require_secret(cfg)
    _require_contracts(cfg)

    async def _info():
        keypair = Keypair.from_secret(cfg.keypair_secret)
        client = build_chain_client(cfg, keypair)
        rounds = build_round_watcher(cfg, keypair.public_key)

        try:
            address = client.account()
            current = await rounds.refresh()
            status = await client.get_participant_status(address)
            eligible = status.active and status.last_reward_round < current

            click.echo(f"Address:           {address}")
            click.echo(f"Current round:     {current}")
            click.echo(f"Active:            {status.active}")
            click.echo(f"Last reward round: {status.last_reward_round}")
            click.echo(f"Eligible now:      {'yes' if eligible else 'no'}")

            if status.last_reward_round:
                pool = await client.get_earnings_pool_for_round(
                    address, status.last_reward_round,
                )
                click.echo("")
                click.echo(f"Earnings pool (round {pool.round}):")
                click.echo(f"  Total stake:  {pool.total_stake}")
                click.echo(f"  Reward pool:  {pool.reward_pool} stroops ({_xlm(pool.reward_pool)})")
                click.echo(f"  Fee pool:     {pool.fee_pool} stroops ({_xlm(pool.fee_pool)})")
        except Exception as exc:
            click.echo(f"Query failed: {exc}", err=True)
            sys.exit(1)
        finally:
            await rounds.close()
            await client.close()

    asyncio.run(_info())


# ── One-shot claim ─────────────────────────────────────


@cli.command()
@click.pass_context
def claim(ctx: click.Context) -> None:
    """Run one claim attempt for the current round and exit."""
    cfg = ctx.obj["config"]
    _require_secret(cfg)
    _require_contracts(cfg)

    async def _claim():
        keypair = Keypair.from_secret(cfg.keypair_secret)
        client = build_chain_client(cfg, keypair)
        rounds = build_round_watcher(cfg, keypair.public_key)
        store = SQLiteRewardStore(cfg.db_path)
        await store.initialize()

        try:
            try:
                current = await rounds.refresh()
                worker = RewardWorker(client, rounds, store)
                result = await worker.try_reward()
            except ChainError as exc:
                click.echo(f"Query failed: {exc}", err=True)
                sys.exit(1)

            if result is None:
                click.echo(f"Nothing to claim for round {current} (inactive or already claimed).")
                return
            if result.success:
                click.echo(f"Claimed reward for round {result.round}")
                click.echo(f"  Tx hash:   {result.tx_hash}")
                click.echo(f"  Replaced:  {'yes' if result.replaced else 'no'}")
                click.echo(f"  Duration:  {result.duration_ms}ms")
            else:
                click.echo(
                    f"Claim for round {result.round} failed: {result.outcome.value}", err=True,
                )
                click.echo(f"  Error:     {result.error}", err=True)
                sys.exit(1)
        finally:
            await store.close()
            await rounds.close()
            await client.close()

    asyncio.run(_claim())


# ── History ────────────────────────────────────────────


@cli.command()
@click.option("-n", "--limit", type=int, default=20, help="Number of attempts to show")
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Show recent claim attempts."""
    cfg = ctx.obj["config"]

    async def _history():
        store = SQLiteRewardStore(cfg.db_path)
        await store.initialize()
        try:
            summary = await store.get_summary()
            attempts = await store.get_recent_attempts(limit)
        finally:
            await store.close()

        if not attempts:
            click.echo("No claim attempts recorded.")
            return

        click.echo(
            f"Attempts: {summary.attempts}  claimed: {summary.claimed}  "
            f"failed: {summary.failed}  fee bumps: {summary.replaced}"
        )
        if summary.last_claimed_round is not None:
            click.echo(f"Last claimed round: {summary.last_claimed_round}")
        click.echo("")
        for a in attempts:
            tx = a.tx_hash[:16] if a.tx_hash else "-"
            line = (
                f"  round={a.round} {a.outcome} tx={tx}"
                f"{' (bumped)' if a.replaced else ''} {a.duration_ms}ms at={a.created_at}"
            )
            if a.error:
                line += f" error={a.error}"
            click.echo(line)

    asyncio.run(_history())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
