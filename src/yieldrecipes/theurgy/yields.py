"""
Theurgy Yields - Browse and act on Yield.xyz yield opportunities.

Interactive flow:
- Load every yield (paginated, fetched concurrently)
- Select one; show metadata and the wallet's balances
- Enter / Exit with schema-driven arguments
- Manage pending actions offered on existing balances
- Page through validators
"""

from __future__ import annotations

import sys
import time
from typing import Any, Callable, Optional

import click

from ..config import DEFAULT_CROSS_CHAIN_DELAY, get_settings
from ..errors import RecipeError
from ..pneuma.yields import YieldsClient
from ..schema.prompter import PromptContext, SchemaPrompter
from ..schema.prompts import Choice, ClickPrompter, Prompter
from ..sigil.wallets import WalletSet
from ..utils import banner, format_apy, format_usd, label, rule, section
from .session import open_client, open_wallets, print_summary, report_error, run_action

_EXIT = object()
_BACK = "Back"

VALIDATOR_PAGE_SIZE = 10


# ============ Display ============


def yield_name(info: dict[str, Any]) -> str:
    return (info.get("metadata") or {}).get("name") or info.get("id", "")


def _reward_total(info: dict[str, Any]) -> Any:
    return (info.get("rewardRate") or {}).get("total") or 0


def yield_choice_label(info: dict[str, Any]) -> str:
    symbol = (info.get("token") or {}).get("symbol") or "?"
    return (
        f"{yield_name(info)} ({symbol}) on {info.get('network', '')} "
        f"- APY: {format_apy(_reward_total(info))}"
    )


def _token_line(token: dict[str, Any]) -> str:
    text = token.get("symbol", "")
    if token.get("name"):
        text += f" - {token['name']}"
    if token.get("address"):
        text += f" ({token['address']})"
    return text


def display_yield_info(info: dict[str, Any]) -> None:
    metadata = info.get("metadata") or {}
    mechanics = info.get("mechanics") or {}
    status = info.get("status") or {}

    banner(yield_name(info), metadata.get("description"))

    section("Key Metrics")
    click.echo(f"  APY: {format_apy(_reward_total(info))}")
    tvl = (info.get("statistics") or {}).get("tvlUsd")
    if tvl:
        click.echo(f"  TVL: {format_usd(tvl)}")
    click.echo(f"  Type: {mechanics.get('type') or 'N/A'}\n")

    section("Input Token")
    tokens = info.get("inputTokens") or ([info["token"]] if info.get("token") else [])
    if tokens:
        for token in tokens:
            click.echo(f"  {_token_line(token)}")
    else:
        click.echo("  N/A")

    output = info.get("outputToken")
    if output and output.get("symbol") != (info.get("token") or {}).get("symbol"):
        section("Output Token")
        click.echo(f"  {_token_line(output)}\n")

    components = (info.get("rewardRate") or {}).get("components") or []
    if components:
        section("Reward Rate Breakdown")
        for component in components:
            click.echo(
                f"  {format_apy(component.get('rate'))} {component.get('rateType', '')} "
                f"from {component.get('yieldSource', '')}"
            )
            if component.get("description"):
                click.echo(f"    └─ {component['description']}")
            if component.get("token"):
                click.echo(f"    └─ Token: {component['token'].get('symbol', '')}")

    limits = mechanics.get("entryLimits")
    if limits:
        section("Entry Limits")
        click.echo(f"  Minimum: {limits.get('minimum')}")
        click.echo(f"  Maximum: {limits.get('maximum') or 'No limit'}\n")

    section("Network & Provider")
    chain = f" (Chain ID: {info['chainId']})" if info.get("chainId") else ""
    click.echo(f"  Network: {info.get('network', '')}{chain}")
    click.echo(f"  Provider: {info.get('providerId', '')}\n")

    section("Available Actions")
    click.echo(f"  Enter: {'Yes' if status.get('enter') else 'No'}")
    click.echo(f"  Exit: {'Yes' if status.get('exit') else 'No'}\n")


def _validator_rate(validator: dict[str, Any]) -> Optional[str]:
    rate = validator.get("rewardRate")
    if not rate:
        return None
    return f"{format_apy(rate.get('total'))} {rate.get('rateType', '')}".rstrip()


def display_balances(balance_data: dict[str, Any], info: dict[str, Any]) -> None:
    banner(f"{yield_name(info)} - Balances")
    balances = balance_data.get("balances") or []
    if not balances:
        click.echo("No balances found for this yield\n")
        return

    for balance in balances:
        token = balance.get("token") or {}
        section(str(balance.get("type", "")).upper())
        click.echo(f"  Amount: {balance.get('amount')} {token.get('symbol', '')}")
        if balance.get("amountUsd"):
            click.echo(f"  Value: {format_usd(balance['amountUsd'])}")
        if token.get("address"):
            click.echo(f"  Token Address: {token['address']}")
        if balance.get("address"):
            click.echo(f"  Balance Address: {balance['address']}")
        click.echo(f"  Earning: {'Yes' if balance.get('isEarning') else 'No'}")

        validator = balance.get("validator")
        if validator:
            click.echo(f"  Validator: {validator.get('name') or validator.get('address')}")
            if validator.get("address"):
                click.echo(f"    Address: {validator['address']}")
            if _validator_rate(validator):
                click.echo(f"    APY: {_validator_rate(validator)}")
            if validator.get("commission") is not None:
                click.echo(f"    Commission: {validator['commission'] * 100:.2f}%")
            if validator.get("status"):
                click.echo(f"    Status: {validator['status']}")

        validators = balance.get("validators") or []
        if validators:
            click.echo(f"  Validators ({len(validators)}):")
            for item in validators:
                click.echo(f"    - {item.get('name') or item.get('address')}")
                if _validator_rate(item):
                    click.echo(f"      APY: {_validator_rate(item)}")
                if item.get("commission") is not None:
                    click.echo(f"      Commission: {item['commission'] * 100:.2f}%")

        pending = balance.get("pendingActions") or []
        if pending:
            click.echo("  Available Actions:")
            for action in pending:
                intent = f" ({action['intent']})" if action.get("intent") else ""
                click.echo(f"    - {action.get('type')}{intent}")
            click.echo()
        else:
            click.echo("  Available Actions: None\n")


def pending_action_choices(balance_data: dict[str, Any]) -> list[Choice]:
    """One choice per pending action offered on any balance."""
    choices = []
    for balance in balance_data.get("balances") or []:
        token = balance.get("token") or {}
        suffix = ""
        if balance.get("validator"):
            validator = balance["validator"]
            suffix = f" - {validator.get('name') or validator.get('address')}"
        elif balance.get("validators"):
            count = len(balance["validators"])
            suffix = f" - {count} validator{'s' if count > 1 else ''}"
        for pending in balance.get("pendingActions") or []:
            text = (
                f"{balance.get('type')} - {pending.get('type')} "
                f"({balance.get('amount')} {token.get('symbol', '')}){suffix}"
            )
            choices.append(Choice(text, (balance, pending)))
    return choices


# ============ Actions ============


def execute_action(
    client: YieldsClient,
    info: dict[str, Any],
    wallets: WalletSet,
    prompter: Prompter,
    kind: str,
    managed: Optional[tuple[dict[str, Any], dict[str, Any]]] = None,
    sleep: Callable[[float], None] = time.sleep,
    cross_chain_delay: float = DEFAULT_CROSS_CHAIN_DELAY,
) -> bool:
    """
    Collect arguments, confirm, create the action and run its transactions.

    Args:
        kind: ``enter``, ``exit`` or ``manage``
        managed: ``(balance, pendingAction)`` for ``manage``

    Returns:
        False when the user cancelled at the confirmation prompt
    """
    is_manage = kind == "manage"
    if is_manage:
        if managed is None:
            raise ValueError("manage requires a (balance, pendingAction) pair")
        title = managed[1].get("type") or "Manage"
        schema = managed[1].get("arguments")
    else:
        title = kind.capitalize()
        schema = ((info.get("mechanics") or {}).get("arguments") or {}).get(kind)

    click.echo(f"\n{title if is_manage else title + ' Yield'}\n")

    arguments: dict[str, Any] = {}
    if schema:
        context = PromptContext(integration_id=info.get("id"), validator_lookup=client.list_validators)
        arguments.update(SchemaPrompter(prompter).collect(schema, context))
    elif not is_manage:
        arguments["amount"] = prompter.text(f"{title} amount:")

    rows: list[tuple[str, Any]] = [("Yield", yield_name(info))]
    if managed is not None:
        balance = managed[0]
        symbol = (balance.get("token") or {}).get("symbol", "")
        rows.append(("Balance", f"{balance.get('type')} - {balance.get('amount')} {symbol}"))
    rows.append(("Action", title))
    print_summary("Action Summary:", rows, arguments)

    if not prompter.confirm("Proceed?", default=False):
        click.echo("Cancelled\n")
        return False

    click.echo("\nCreating action...\n")
    address = wallets.address_for(info.get("network"))
    if is_manage:
        action = client.manage(
            info["id"], address, managed[1].get("type", ""), managed[1].get("passthrough", ""), arguments
        )
    elif kind == "enter":
        action = client.enter(info["id"], address, arguments)
    else:
        action = client.exit(info["id"], address, arguments)

    sleep(1.0)
    run_action(
        action, client, wallets, prompter, cross_chain_delay=cross_chain_delay, sleep=sleep
    )

    if is_manage:
        click.secho("\nAction completed successfully!\n", fg="green")
    else:
        click.secho(f"\nYield {'entered' if kind == 'enter' else 'exited'} successfully!\n", fg="green")
    return True


def view_validators(
    client: YieldsClient,
    info: dict[str, Any],
    prompter: Prompter,
    limit: int = VALIDATOR_PAGE_SIZE,
) -> None:
    offset = 0
    while True:
        click.echo("\nFetching validators...\n")
        page = client.get_validators(info["id"], limit=limit, offset=offset)
        items = page.get("items") or []
        total = int(page.get("total") or len(items))
        if not items and offset == 0:
            click.echo("No validators found for this yield\n")
            return

        pages = max(1, -(-total // limit))
        banner(
            f"{yield_name(info)} - Validators",
            f"Page {offset // limit + 1} of {pages} ({total} total)",
        )
        for validator in items:
            section(validator.get("name") or validator.get("address", ""))
            label("Address", validator.get("address", ""))
            if validator.get("status"):
                label("Status", validator["status"])
            rate = validator.get("rewardRate")
            if rate:
                label("APY", _validator_rate(validator))
                for component in rate.get("components") or []:
                    click.echo(
                        f"    - {format_apy(component.get('rate'))} {component.get('rateType', '')} "
                        f"from {component.get('yieldSource', '')}"
                    )
            if validator.get("commission") is not None:
                label("Commission", f"{validator['commission'] * 100:.2f}%")
            if validator.get("tvlUsd"):
                label("TVL", format_usd(validator["tvlUsd"]))
            if validator.get("votingPower") is not None:
                label("Voting Power", f"{validator['votingPower'] * 100:.2f}%")
            if validator.get("preferred"):
                label("Preferred", "Yes")
            provider = validator.get("provider")
            if provider:
                label("Provider", f"{provider.get('name')} ({provider.get('uniqueId')})")
            click.echo()

        choices = []
        if offset > 0:
            choices.append("Previous Page")
        if offset + limit < total:
            choices.append("Next Page")
        if not choices:
            return
        choices.append(_BACK)

        picked = prompter.select("Navigation:", choices)
        if picked == "Next Page":
            offset += limit
        elif picked == "Previous Page":
            offset = max(0, offset - limit)
        else:
            return


# ============ Menus ============


def yield_menu(
    client: YieldsClient,
    info: dict[str, Any],
    wallets: WalletSet,
    prompter: Prompter,
    sleep: Callable[[float], None] = time.sleep,
    cross_chain_delay: float = DEFAULT_CROSS_CHAIN_DELAY,
) -> None:
    """Loop over the actions available for one yield until the user goes back."""
    display_yield_info(info)
    status = info.get("status") or {}
    address = wallets.address_for(info.get("network"))

    while True:
        managed: list[Choice] = []
        try:
            balance_data = client.get_balances(info["id"], address) or {}
            display_balances(balance_data, info)
            managed = pending_action_choices(balance_data)
        except RecipeError as exc:
            click.secho(f"\nError fetching balances: {exc}\n", fg="red")

        choices = []
        if (info.get("mechanics") or {}).get("requiresValidatorSelection"):
            choices.append("View Validators")
        if status.get("enter"):
            choices.append("Enter")
        if status.get("exit"):
            choices.append("Exit")
        if managed:
            choices.append("Manage")
        choices.append(_BACK)

        picked = prompter.select("What would you like to do?", choices)
        if picked == _BACK:
            return

        try:
            if picked == "Manage":
                target = prompter.select("Select action to manage:", managed + [Choice(_BACK, _BACK)])
                if target == _BACK:
                    continue
                execute_action(
                    client, info, wallets, prompter, "manage", managed=target, sleep=sleep,
                    cross_chain_delay=cross_chain_delay,
                )
            elif picked == "View Validators":
                view_validators(client, info, prompter)
            else:
                execute_action(
                    client, info, wallets, prompter, picked.lower(), sleep=sleep,
                    cross_chain_delay=cross_chain_delay,
                )
        except RecipeError as exc:
            report_error(exc)

        rule(width=60)


def select_yield_flow(
    client: YieldsClient,
    wallets: WalletSet,
    prompter: Prompter,
    cross_chain_delay: float = DEFAULT_CROSS_CHAIN_DELAY,
) -> None:
    click.echo("\nFetching all yield opportunities...\n")
    yields = client.fetch_all_yields()
    click.echo(f"Loaded {len(yields)} yield opportunities\n")

    choices = [Choice(yield_choice_label(y), y) for y in yields]
    choices.append(Choice("Exit", _EXIT))

    while True:
        click.echo("\nSelect a Yield\n")
        picked = prompter.autocomplete("Select yield:", choices)
        if picked is _EXIT:
            return
        yield_menu(client, picked, wallets, prompter, cross_chain_delay=cross_chain_delay)


# ============ Command ============


@click.command()
def yields() -> None:
    """
    Browse yields and enter, exit or manage positions.

    Requires MNEMONIC and YIELDS_API_KEY.
    """
    try:
        settings = get_settings()
        client = open_client(YieldsClient, settings.yields)
        wallets = open_wallets(settings)
    except RecipeError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(exc.exit_code)

    click.echo("\nYield.xyz Yields API\n")
    click.echo(f"API URL: {settings.yields.base_url}\n")
    click.echo(f"Address: {wallets.address}\n")

    with client:
        select_yield_flow(client, wallets, ClickPrompter(), settings.cross_chain_delay)
