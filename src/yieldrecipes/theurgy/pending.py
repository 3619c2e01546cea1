"""
Theurgy Pending - Execute a pending action on a StakeKit balance.

Pending actions are what a staked balance offers next: claim rewards,
withdraw unbonded funds, restake, and so on.
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Callable, Optional

import click

from ..config import Settings, get_settings
from ..errors import ApiError, RecipeError
from ..pneuma.pipeline import FixedDelayWait, PipelineResult
from ..pneuma.stakekit import StakeKitClient
from ..schema.prompter import PromptContext, SchemaPrompter
from ..schema.prompts import Choice, ClickPrompter, Prompter
from ..sigil.wallets import WalletSet
from .session import open_client, open_wallets, print_error_body, run_action
from .stake import additional_addresses, choose_integration


def pending_choices(balances: list[dict[str, Any]]) -> list[Choice]:
    choices = []
    for balance in balances:
        for pending in balance.get("pendingActions") or []:
            text = f"{pending.get('type')} - Balance: {balance.get('amount')} ({balance.get('type')})"
            choices.append(Choice(text, pending))
    return choices


def pending_arguments_schema(pending: dict[str, Any]) -> Any:
    """StakeKit nests the argument map as ``{"args": {"args": {...}}}``."""
    block = pending.get("args") or {}
    if isinstance(block, dict) and isinstance(block.get("args"), dict):
        return block["args"]
    return block


def pending_flow(
    client: StakeKitClient,
    wallets: WalletSet,
    prompter: Prompter,
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[PipelineResult]:
    integration = choose_integration(
        client, prompter, "Choose the integration ID you would like to test:"
    )
    integration_id = integration["id"]
    network = (integration.get("token") or {}).get("network", "")

    config = client.get_yield(integration_id)
    click.echo(f"Initializing wallet for {network}...")
    address = wallets.address_for(network)
    click.echo(f"Wallet address: {address}")
    extra = additional_addresses(config, "enter")

    click.echo(f"\nRetrieving staked balances for {integration_id}...")
    balances = client.yield_balances(integration_id, address, extra)
    click.echo("\n=== Staked Balances and Pending Actions ===")
    click.echo(json.dumps(balances, indent=2))
    click.echo("=== End of Staked Balances ===\n")

    choices = pending_choices(balances)
    if not choices:
        click.secho(f"No pending actions available on integration {integration_id}.", fg="yellow")
        click.echo("You may need to stake first or wait for actions to become available.")
        return None

    click.echo(f"Found {len(choices)} pending actions.")
    pending = prompter.select("Which pending action would you like to execute?", choices)
    click.echo(f"\nSelected action: {pending.get('type')}")

    context = PromptContext(integration_id=integration_id, validator_lookup=client.get_validators)
    args = SchemaPrompter(prompter).collect(pending_arguments_schema(pending), context)

    click.echo("\nCreating pending action session...")
    action = client.create_pending_action(
        integration_id, pending.get("type", ""), pending.get("passthrough", ""), args
    )
    click.echo(f"Processing pending action with {len(action.transactions)} transactions...\n")

    result = run_action(
        action,
        client,
        wallets,
        prompter,
        cross_chain_wait=FixedDelayWait(settings.cross_chain_delay),
        sleep=sleep,
    )
    click.secho("Pending action completed successfully!", fg="green")
    return result


@click.command()
def pending() -> None:
    """
    Execute a pending action (claim, withdraw, ...) on a staked balance.

    Requires MNEMONIC and API_KEY.
    """
    try:
        settings = get_settings()
        client = open_client(StakeKitClient, settings.stakekit)
        wallets = open_wallets(settings)
    except RecipeError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(exc.exit_code)

    with client:
        try:
            pending_flow(client, wallets, ClickPrompter(), settings)
        except ApiError as exc:
            click.secho(f"Error executing pending action: {exc}", fg="red")
            print_error_body(exc)
            sys.exit(exc.exit_code)
