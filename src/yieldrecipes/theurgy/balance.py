"""
Theurgy Balance - Print token and staked balances for one integration.

Read-only: with ``--address`` no mnemonic is needed.
"""

from __future__ import annotations

import json
import sys
from typing import Optional

import click

from ..config import get_settings
from ..errors import ApiError, RecipeError
from ..pneuma.client import describe_api_error, fetch_concurrently
from ..pneuma.stakekit import StakeKitClient
from ..sigil.wallets import WalletSet
from .session import open_client


@click.command()
@click.argument("integration_id")
@click.option("--address", "-a", help="Address to query (default: derived from MNEMONIC)")
def balance(integration_id: str, address: Optional[str]) -> None:
    """Show available and staked balances for INTEGRATION_ID."""
    try:
        settings = get_settings()
        client = open_client(StakeKitClient, settings.stakekit)
    except RecipeError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(exc.exit_code)

    with client:
        try:
            integration = client.get_yield(integration_id)
            token = integration.get("token") or {}
            network = token.get("network", "")
            if not address:
                address = WalletSet(settings.require_mnemonic(), settings.wallet_index).address_for(network)

            available, staked = fetch_concurrently(
                lambda: client.token_balance(network, address, token.get("address")),
                lambda: client.yield_balances(integration_id, address),
            )
        except RecipeError as exc:
            message = describe_api_error(exc) if isinstance(exc, ApiError) else str(exc)
            click.secho(f"ERROR: {message}", fg="red")
            sys.exit(exc.exit_code)

    click.echo(f"Integration: {integration_id}")
    click.echo(f"Address:     {address}")
    click.echo()
    amount = available[0].get("amount", "0") if available else "0"
    click.echo(f"Available {token.get('symbol', '')}: {amount}")
    click.echo("Staked:")
    click.echo(json.dumps(staked, indent=2))
