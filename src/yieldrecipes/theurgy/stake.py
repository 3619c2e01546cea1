"""
Theurgy Stake - Enter or exit a StakeKit integration.

Flow:
1. Choose an enabled integration and an action (enter / exit)
2. Show available and staked balances (fetched concurrently)
3. Ask for the amount and any further arguments the integration needs
4. Create the action session and run every transaction step, with gas
   mode selection and a cross-chain wait between networks
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Callable, Optional

import click

from ..config import Settings, get_settings
from ..errors import ApiError, RecipeError
from ..pneuma.client import fetch_concurrently
from ..pneuma.models import Transaction
from ..pneuma.pipeline import BalanceArrivalWait, CrossChainWait, FixedDelayWait, PipelineResult
from ..pneuma.stakekit import StakeKitClient
from ..schema.fields import NumberField
from ..schema.prompter import PromptContext, SchemaPrompter, parse_number
from ..schema.prompts import Choice, ClickPrompter, Prompter
from ..sigil.wallets import WalletSet
from ..utils import format_apy, to_float
from .session import open_client, open_wallets, print_error_body, run_action


# ============ Integration selection ============


def integration_label(integration: dict[str, Any]) -> str:
    token = integration.get("token") or {}
    return (
        f"{integration.get('name') or integration.get('id')} "
        f"({token.get('symbol', '?')}) - APY: {format_apy(integration.get('apy'))}"
    )


def choose_integration(client: StakeKitClient, prompter: Prompter, message: str) -> dict[str, Any]:
    """
    Let the user pick one of the enabled integrations.

    Raises:
        RecipeError: No integration is enabled for this API key
    """
    integrations = client.enabled_yields()
    if not integrations:
        raise RecipeError("No enabled yield integrations found")
    return prompter.autocomplete(message, [Choice(integration_label(i), i) for i in integrations])


def choose_token(integration: dict[str, Any], prompter: Prompter) -> tuple[dict[str, Any], bool]:
    """
    Pick the input token for integrations that accept several.

    Returns:
        ``(token, chosen)`` where ``chosen`` is True when the user picked one
        of several tokens and the action must name it as ``inputToken``
    """
    tokens = [t for t in integration.get("tokens") or [] if isinstance(t, dict)]
    if len(tokens) <= 1:
        return dict(integration.get("token") or {}), False
    token = prompter.autocomplete(
        "This integration supports multiple tokens. Which would you like to use?",
        [Choice(f"{t.get('symbol', '?')} on {t.get('network', '?')}", t) for t in tokens],
    )
    return dict(token), True


def action_config(config: dict[str, Any], kind: str) -> dict[str, Any]:
    """``{addresses, args}`` block describing what ``kind`` requires."""
    return dict((config.get("args") or {}).get(kind) or {})


def additional_addresses(config: dict[str, Any], kind: str) -> dict[str, Any]:
    required = (action_config(config, kind).get("addresses") or {}).get("additionalAddresses")
    if required:
        click.secho(
            "Warning: this integration asks for additional addresses, which are not derived; "
            "the action may be rejected.",
            fg="yellow",
        )
    return {}


def _available_amount(token_balances: Any) -> float:
    if isinstance(token_balances, list) and token_balances:
        return to_float(token_balances[0].get("amount"))
    return 0.0


def token_arrival_wait(
    client: StakeKitClient,
    wallets: WalletSet,
    token: dict[str, Any],
    amount: float,
    baseline: float,
    settings: Settings,
) -> CrossChainWait:
    """
    Wait for the staked token to land on its home network.

    ``baseline`` is the available balance shown before the action; the wait
    ends once ``amount`` more has arrived. Steps on any other network fall
    back to the fixed delay.
    """
    network = token.get("network", "")

    def fetch_balance(tx: Transaction) -> Optional[float]:
        if tx.network != network:
            return None
        balances = client.token_balance(network, wallets.address_for(network), token.get("address"))
        return _available_amount(balances)

    return BalanceArrivalWait(
        fetch_balance=fetch_balance,
        expected=amount,
        baseline=baseline,
        fallback=FixedDelayWait(settings.cross_chain_delay),
    )


# ============ Recipe ============


def stake_flow(
    client: StakeKitClient,
    wallets: WalletSet,
    prompter: Prompter,
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[PipelineResult]:
    integration = choose_integration(
        client, prompter, "Choose the staking integration you would like to use:"
    )
    integration_id = integration["id"]
    token, token_chosen = choose_token(integration, prompter)

    kind = prompter.select("What action would you like to perform?", ["enter", "exit"])
    config = client.get_yield(integration_id)

    network = token.get("network", "")
    click.echo(f"Initializing wallet for {network}...")
    address = wallets.address_for(network)
    click.echo(f"Wallet address: {address}")
    extra = additional_addresses(config, kind)

    token_balances, staked = fetch_concurrently(
        lambda: client.token_balance(network, address, token.get("address")),
        lambda: client.yield_balances(integration_id, address, extra),
    )
    available = _available_amount(token_balances)
    click.echo("\n=== Balances ===")
    click.echo(f"Available {token.get('symbol', '')}: {available:g}")
    click.echo(f"Staked: {json.dumps(staked, indent=2)}")
    click.echo("=== Balances End ===\n")

    amount_field = NumberField(name="amount", required=True, minimum=0, as_string=True)

    def validate(text: str) -> Optional[str]:
        try:
            parse_number(text, amount_field)
        except ValueError as exc:
            return str(exc)
        return None

    verb = "stake" if kind == "enter" else "unstake"
    amount = prompter.text(f"How much would you like to {verb}", validate=validate)
    args: dict[str, Any] = {"amount": amount}
    if token_chosen:
        args["inputToken"] = token

    context = PromptContext(integration_id=integration_id, validator_lookup=client.get_validators)
    args.update(
        SchemaPrompter(prompter).collect(action_config(config, kind), context, skip=("amount",))
    )

    click.echo(f"\nCreating {kind} action session...")
    action = client.create_action(kind, integration_id, address, args, extra)
    click.echo(f"Processing {kind} action with {len(action.transactions)} transactions...\n")

    if kind == "enter":
        wait = token_arrival_wait(client, wallets, token, to_float(amount), available, settings)
    else:
        wait = FixedDelayWait(settings.cross_chain_delay)
    result = run_action(action, client, wallets, prompter, cross_chain_wait=wait, sleep=sleep)
    click.secho("Action completed successfully!", fg="green")
    return result


@click.command()
def stake() -> None:
    """
    Stake or unstake through a StakeKit integration.

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
            stake_flow(client, wallets, ClickPrompter(), settings)
        except ApiError as exc:
            click.secho(f"Error executing staking action: {exc}", fg="red")
            print_error_body(exc)
            sys.exit(exc.exit_code)
