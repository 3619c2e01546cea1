"""
Yield Recipes CLI

Interactive recipes for the Yield.xyz Yields and Perps APIs and the
legacy StakeKit API. Every signer is derived locally from MNEMONIC;
nothing is stored on disk.

Commands:
  yields   - Browse yields; enter, exit and manage positions
  stake    - Stake or unstake through a StakeKit integration
  pending  - Execute a pending action on a staked balance
  perps    - Trade perpetual futures
  balance  - Print token and staked balances for an integration
  whoami   - Show the derived wallet addresses
  info     - Show configuration status
"""

from __future__ import annotations

import logging
import sys

import click

from .config import get_settings
from .errors import ApiError, RecipeError
from .pneuma.client import describe_api_error
from .sigil.wallets import WalletSet


# ============ Constants ============

VERSION = "1.0.0"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# ============ Banner ============


def _print_banner() -> None:
    """Print the CLI banner."""
    border = click.style("  ◆ ═══════════════════════════════════════ ◆", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()
    click.echo(
        click.style("     Y I E L D   R E C I P E S", fg="bright_white", bold=True)
        + click.style(f"     v{VERSION}", dim=True)
    )
    click.secho("        ─── Yields · Staking · Perps ───", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="yield-recipes")
@click.option("--verbose", "-v", is_flag=True, help="Log every API call (DEBUG)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Yield Recipes: yields, staking and perps from the terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )
    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .theurgy.balance import balance
from .theurgy.pending import pending
from .theurgy.perps import perps
from .theurgy.stake import stake
from .theurgy.yields import yields

cli.add_command(yields)
cli.add_command(stake)
cli.add_command(pending)
cli.add_command(perps)
cli.add_command(balance)


# ============ Identity ============


@cli.command()
def whoami() -> None:
    """Show the wallet addresses derived from MNEMONIC."""
    try:
        settings = get_settings()
        wallets = WalletSet(settings.require_mnemonic(), settings.wallet_index)
        click.echo(f"Index:   {wallets.index}")
        click.echo(f"EVM:     {wallets.address}")
        click.echo(f"Solana:  {wallets.address_for('solana')}")
    except RecipeError as exc:
        click.echo(f"No wallet configured: {exc}")
        click.echo("Set MNEMONIC in the environment or in .env.")
        sys.exit(exc.exit_code)


# ============ Info ============


@cli.command()
def info() -> None:
    """Show configuration status."""
    _print_banner()

    # ── Status ──
    click.secho("  Status ─────────────────────────────────", fg="cyan")
    click.echo()

    try:
        settings = get_settings()
    except RecipeError as exc:
        click.secho(f"  Configuration error: {exc}", fg="red")
        sys.exit(exc.exit_code)

    if settings.mnemonic:
        try:
            address = WalletSet(settings.mnemonic, settings.wallet_index).address
            wallet_text = click.style(address, fg="bright_white")
        except RecipeError as exc:
            wallet_text = click.style(f"invalid ({exc})", fg="red")
    else:
        wallet_text = click.style("not configured", fg="yellow") + click.style("  (set MNEMONIC)", dim=True)
    click.echo(click.style("  Address:     ", dim=True) + wallet_text)
    click.echo(click.style("  Index:       ", dim=True) + str(settings.wallet_index))

    for name, api in (
        ("Yields API:  ", settings.yields),
        ("Perps API:   ", settings.perps),
        ("StakeKit:    ", settings.stakekit),
    ):
        if api.api_key:
            status = click.style("key set", fg="green")
        else:
            status = click.style("no key", fg="yellow") + click.style(f"  (set {api.key_var})", dim=True)
        click.echo(click.style(f"  {name}", dim=True) + f"{api.base_url}  " + status)

    click.echo()

    # ── Commands ──
    click.secho("  Commands ───────────────────────────────", fg="cyan")
    click.echo()

    commands = [
        ("yields  ", "Browse yields; enter, exit, manage"),
        ("stake   ", "Stake through a StakeKit integration"),
        ("pending ", "Run a pending action on a balance"),
        ("perps   ", "Trade perpetual futures"),
        ("balance ", "Show balances for an integration"),
        ("whoami  ", "Show derived wallet addresses"),
    ]
    for cmd, desc in commands:
        click.echo(
            click.style("  ", dim=True)
            + click.style(cmd, fg="bright_white", bold=True)
            + click.style("  ◇  ", fg="cyan")
            + click.style(desc, dim=True)
        )

    click.echo()


# ============ Entry Points ============


def main() -> None:
    """Yield Recipes CLI entry point."""
    # Ensure UTF-8 output on Windows (for Unicode box-drawing / symbols)
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass  # Fallback: old Python or non-tty
    try:
        rv = cli.main(prog_name="yield-recipes", standalone_mode=False)
    except click.Abort:
        click.echo("Script was aborted.", err=True)
        sys.exit(130)
    except click.ClickException as exc:
        exc.show()
        sys.exit(exc.exit_code)
    except RecipeError as exc:
        message = describe_api_error(exc) if isinstance(exc, ApiError) else str(exc)
        click.secho(f"Script failed: {message}", fg="red", err=True)
        sys.exit(exc.exit_code)
    if isinstance(rv, int) and rv:
        sys.exit(rv)


if __name__ == "__main__":
    main()
