"""
Theurgy Perps - Trade perpetual futures through the Yield.xyz Perps API.

Menu:
- Account summary (balance, positions, orders fetched concurrently)
- Balance details, positions & orders, market table
- Trade: pick a market, then an action its argument schema allows
- Manage an existing position or order through its pending actions
- Deposit / withdraw collateral

Every action response carrying ``signedMetadata`` is verified before
its transactions are signed; metadata that fails verification is only
signed after an explicit confirmation.
"""

from __future__ import annotations

import sys
import time
from typing import Any, Callable, Optional

import click

from ..config import get_settings
from ..errors import RecipeError, SigningError
from ..pneuma.client import fetch_concurrently
from ..pneuma.models import Action
from ..pneuma.perps import (
    POSITION_ONLY_ACTIONS,
    PerpActionType,
    PerpsClient,
    action_label,
)
from ..schema.prompter import SchemaPrompter
from ..schema.prompts import Choice, ClickPrompter, Prompter
from ..schema.validation import validate_arguments
from ..sigil.metadata import verify_signed_metadata
from ..sigil.wallets import WalletSet
from ..utils import display_value, format_amount, format_pnl, humanize_key, rule, to_float
from .session import open_client, open_wallets, report_error, run_action

# Pause between consecutive order submissions
STEP_DELAY = 1.0

MAIN_MENU = [
    ("View Balance Details", "balance"),
    ("View Positions & Orders", "positions"),
    ("View Markets", "markets"),
    ("Execute Trade / Action", "trade"),
    ("Deposit Funds", "fund"),
    ("Withdraw Funds", "withdraw"),
    ("Exit", "exit"),
]

Sleep = Callable[[float], None]


# ============ Display ============


def _usd(value: Any) -> str:
    return f"${format_amount(value)}"


def _margin_mode(mode: Optional[str]) -> str:
    return "Cross" if mode == "cross" else "Isolated"


def print_account_summary(balance: dict[str, Any], positions: list, orders: list) -> None:
    collateral = (balance.get("collateral") or {}).get("symbol", "")
    click.echo("Account Summary")
    rule(width=60)
    click.echo(f"Account Value: {_usd(balance.get('accountValue'))} {collateral}")
    click.echo(
        f"Available: {_usd(balance.get('availableBalance'))} | Used: {_usd(balance.get('usedMargin'))}"
    )
    click.echo(f"Unrealized PnL: {format_pnl(balance.get('unrealizedPnl'))}")
    click.echo(f"Positions: {len(positions)} | Orders: {len(orders)}")
    rule(width=60)
    click.echo()


def show_balance(client: PerpsClient, provider_id: str, address: str) -> None:
    click.echo("\nBalance Details\n")
    balance = client.get_balances(provider_id, address)
    collateral = balance.get("collateral") or {}

    click.echo("Account Summary:")
    rule(width=50)
    click.echo(f"Collateral: {collateral.get('symbol', '')} ({collateral.get('name', '')})")
    click.echo(f"Account Value: {_usd(balance.get('accountValue'))}")
    click.echo(f"Used Margin: {_usd(balance.get('usedMargin'))}")
    click.echo(f"Available Balance: {_usd(balance.get('availableBalance'))}")
    click.echo(f"Unrealized PnL: {format_pnl(balance.get('unrealizedPnl'))}")
    rule(width=50)
    click.echo()


def print_position(position: dict[str, Any], heading: str) -> None:
    size_usd = to_float(position.get("size")) * to_float(position.get("markPrice"))
    click.echo(heading)
    click.echo(f"  Market: {position.get('marketId')}")
    click.echo(f"  Side: {str(position.get('side', '')).upper()}")
    click.echo(f"  Size: {position.get('size')} (${size_usd:,.2f})")
    click.echo(f"  Entry Price: {_usd(position.get('entryPrice'))}")
    click.echo(f"  Mark Price: {_usd(position.get('markPrice'))}")
    click.echo(f"  Leverage: {position.get('leverage')}x ({_margin_mode(position.get('marginMode'))})")
    if position.get("margin") is not None:
        click.echo(f"  Margin: {_usd(position.get('margin'))}")
    click.echo(f"  Unrealized PnL: {format_pnl(position.get('unrealizedPnl'))}")
    if position.get("liquidationPrice"):
        click.echo(f"  Liquidation Price: {_usd(position['liquidationPrice'])}")
    click.echo()


def order_type_label(order: dict[str, Any]) -> str:
    kind = order.get("type")
    if kind == "stop_loss":
        return "[Stop Loss]"
    if kind == "take_profit":
        return "[Take Profit]"
    return "[Order]"


def print_order(order: dict[str, Any], index: int) -> None:
    click.echo(f"{order_type_label(order)} Order {index}:")
    click.echo(f"  Market: {order.get('marketId')}")
    click.echo(f"  Type: {str(order.get('type', '')).replace('_', ' ').upper()}")
    click.echo(f"  Side: {str(order.get('side', '')).upper()}")
    click.echo(f"  Size: {order.get('size')}")
    if order.get("triggerPrice"):
        click.echo(f"  Trigger Price: {_usd(order['triggerPrice'])}")
    if order.get("limitPrice") and order.get("limitPrice") != order.get("triggerPrice"):
        click.echo(f"  Limit Price: {_usd(order['limitPrice'])}")
    click.echo(f"  Reduce Only: {'Yes' if order.get('reduceOnly') else 'No'}")
    click.echo()


def sort_by_volume(markets: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(markets, key=lambda m: to_float(m.get("volume24h")), reverse=True)


def show_markets(markets: list[dict[str, Any]]) -> None:
    click.echo("\nMarkets\n")
    click.echo(f"Displaying {len(markets)} markets\n")
    click.echo("Markets (sorted by volume):")
    rule(width=120)
    click.echo(f"{'Symbol':<10}{'Mark Price':<15}{'24h Change':<12}{'24h Volume':<15}Funding Rate")
    rule(width=120)
    for market in sort_by_volume(markets):
        change = to_float(market.get("priceChangePercent24h"))
        sign = "+" if change >= 0 else ""
        symbol = (market.get("baseAsset") or {}).get("symbol", "")
        price = f"${to_float(market.get('markPrice')):.2f}"
        volume = f"${to_float(market.get('volume24h')) / 1_000_000:.2f}M"
        change_text = f"{sign}{change:.2f}%"
        funding = f"{to_float(market.get('fundingRate')) * 100:.4f}%"
        click.echo(f"{symbol:<10}{price:<15}{change_text:<12}{volume:<15}{funding}")
    rule(width=120)
    click.echo()


def market_label(market: dict[str, Any]) -> str:
    symbol = (market.get("baseAsset") or {}).get("symbol", market.get("id", ""))
    leverage = market.get("leverageRange") or [None, None]
    max_leverage = leverage[-1] if leverage else None
    return f"{symbol} (${to_float(market.get('markPrice')):.2f}) - {max_leverage}x max"


# ============ Actions ============


def report_signed_metadata(action: Action, summary: Optional[dict[str, Any]] = None) -> Optional[bool]:
    if not action.signed_metadata:
        return None
    valid = verify_signed_metadata(action.signed_metadata, summary)
    click.echo(f"   Signed Metadata: {'✓ verified' if valid else '✗ invalid'}")
    return valid


def submit_action(
    client: PerpsClient,
    provider_id: str,
    action_type: str,
    wallets: WalletSet,
    args: dict[str, Any],
    prompter: Prompter,
    sleep: Sleep = time.sleep,
) -> Action:
    click.echo("\nCreating action via API...\n")
    action = client.create_action(provider_id, action_type, wallets.address, args)
    if report_signed_metadata(action) is False and not prompter.confirm(
        "Signed metadata could not be verified. Sign anyway?", default=False
    ):
        raise SigningError(f"Refusing to sign action {action.id}: signed metadata is invalid")
    sleep(1.0)
    run_action(action, client, wallets, prompter, step_delay=STEP_DELAY, sleep=sleep)
    return action


def execute_action(
    client: PerpsClient,
    provider_id: str,
    wallets: WalletSet,
    prompter: Prompter,
    action: dict[str, Any],
    summary_label: Optional[str] = None,
    sleep: Sleep = time.sleep,
) -> bool:
    """
    Run one pending (or account-level) action: fill the rest of its
    arguments from the provider schema, confirm, create and submit.

    Args:
        action: ``{type, label, args}``; ``args`` are pre-filled and not prompted

    Returns:
        False when the user declined to proceed
    """
    action_type = action.get("type", "")
    args: dict[str, Any] = dict(action.get("args") or {})

    schema = client.argument_schemas(provider_id).get(action_type)
    if schema:
        args.update(SchemaPrompter(prompter).collect(schema, skip=tuple(args)))
        validate_arguments(schema, args, action=action_type)

    click.echo("\nAction Summary:")
    if summary_label:
        click.echo(f"  {summary_label}")
    click.echo(f"  Action: {action.get('label') or action_label(action_type)}")
    for key, value in args.items():
        if value is not None and key != "marketId":
            click.echo(f"  {humanize_key(key)}: {display_value(value)}")
    click.echo()

    if not prompter.confirm("Proceed with this action?", default=False):
        click.echo("Cancelled\n")
        return False

    submit_action(client, provider_id, action_type, wallets, args, prompter, sleep=sleep)
    click.secho("\nAction completed successfully!\n", fg="green")
    return True


def execute_trade(
    client: PerpsClient,
    provider_id: str,
    wallets: WalletSet,
    prompter: Prompter,
    markets: list[dict[str, Any]],
    sleep: Sleep = time.sleep,
) -> bool:
    click.echo("\nExecute Trade\n")
    click.echo("Fetching data...\n")
    schemas, positions = fetch_concurrently(
        lambda: client.argument_schemas(provider_id),
        lambda: client.get_positions(provider_id, wallets.address),
    )

    market = prompter.autocomplete(
        "Select market (type to search):",
        [Choice(market_label(m), m) for m in sort_by_volume(markets)],
    )
    existing = next((p for p in positions if p.get("marketId") == market.get("id")), None)
    if existing:
        print_position(existing, "\nCurrent Position:")

    available = [
        action_type
        for action_type, schema in schemas.items()
        if "marketId" in ((schema or {}).get("required") or [])
        and (action_type not in POSITION_ONLY_ACTIONS or existing is not None)
    ]
    if not available:
        click.secho("No trade actions available for this market", fg="yellow")
        return False

    action_type = prompter.select("Select action:", [Choice(action_label(t), t) for t in available])
    schema = schemas[action_type]
    if schema.get("notes"):
        click.echo(f"\nNote: {schema['notes']}\n")

    args: dict[str, Any] = {"marketId": market.get("id")}
    args.update(SchemaPrompter(prompter).collect(schema, skip=("marketId",)))
    validate_arguments(schema, args, action=action_type)

    if not prompter.confirm("Proceed?", default=False):
        click.echo("Cancelled\n")
        return False

    submit_action(client, provider_id, action_type, wallets, args, prompter, sleep=sleep)
    click.secho("\nDone!\n", fg="green")
    return True


def execute_account_action(
    client: PerpsClient,
    provider_id: str,
    wallets: WalletSet,
    prompter: Prompter,
    action_type: str,
    sleep: Sleep = time.sleep,
) -> bool:
    click.echo(f"\n{action_label(action_type)}\n")
    schema = client.argument_schemas(provider_id).get(action_type)
    if not schema:
        click.echo(f"Schema not found for action: {action_type}")
        return False
    if schema.get("notes"):
        click.echo(f"Note: {schema['notes']}\n")
    return execute_action(
        client,
        provider_id,
        wallets,
        prompter,
        {"type": action_type, "label": action_label(action_type), "args": {}},
        sleep=sleep,
    )


# ============ Positions & orders ============


def manage_position(
    client: PerpsClient,
    provider_id: str,
    wallets: WalletSet,
    prompter: Prompter,
    position: dict[str, Any],
    sleep: Sleep = time.sleep,
) -> bool:
    pending = position.get("pendingActions") or []
    if not pending:
        click.echo("\nNo actions available for this position\n")
        return False

    schemas = client.argument_schemas(provider_id)
    actions = [
        a for a in pending
        if "marketId" in ((schemas.get(a.get("type")) or {}).get("required") or [])
    ]
    if not actions:
        click.echo("\nNo position-specific actions available\n")
        return False

    picked = prompter.select(
        "Select action:", [Choice(a.get("label") or action_label(a.get("type", "")), a) for a in actions]
    )
    return execute_action(
        client, provider_id, wallets, prompter, picked,
        summary_label=f"Position: {position.get('marketId')}", sleep=sleep,
    )


def manage_order(
    client: PerpsClient,
    provider_id: str,
    wallets: WalletSet,
    prompter: Prompter,
    order: dict[str, Any],
    sleep: Sleep = time.sleep,
) -> bool:
    pending = order.get("pendingActions") or []
    if not pending:
        click.echo("\nNo actions available for this order\n")
        return False
    picked = prompter.select(
        "Select action:", [Choice(a.get("label") or action_label(a.get("type", "")), a) for a in pending]
    )
    return execute_action(
        client, provider_id, wallets, prompter, picked,
        summary_label=f"Order: {order.get('marketId')} - {order.get('type')}", sleep=sleep,
    )


def show_positions(
    client: PerpsClient,
    provider_id: str,
    wallets: WalletSet,
    prompter: Prompter,
    sleep: Sleep = time.sleep,
) -> None:
    click.echo("\nPositions & Orders\n")
    positions, orders = fetch_concurrently(
        lambda: client.get_positions(provider_id, wallets.address),
        lambda: client.get_orders(provider_id, wallets.address),
    )
    if not positions and not orders:
        click.echo("No open positions or orders\n")
        return

    if positions:
        click.echo(f"{len(positions)} Open Position(s):\n")
        for i, position in enumerate(positions, start=1):
            print_position(position, f"Position {i}:")
    if orders:
        click.echo(f"{len(orders)} Open Order(s):\n")
        for i, order in enumerate(orders, start=1):
            print_order(order, i)

    if not prompter.confirm("Would you like to manage a position or order?", default=False):
        return

    items = [
        Choice(
            f"[Position] {p.get('marketId')} - {str(p.get('side', '')).upper()} {p.get('size')} @ {p.get('leverage')}x",
            ("position", p),
        )
        for p in positions
    ] + [
        Choice(
            f"[Order] {o.get('marketId')} - {str(o.get('type', '')).upper()} "
            f"{str(o.get('side', '')).upper()} {o.get('size')}",
            ("order", o),
        )
        for o in orders
    ]
    kind, item = prompter.select("Select position or order to manage:", items)
    if kind == "position":
        manage_position(client, provider_id, wallets, prompter, item, sleep=sleep)
    else:
        manage_order(client, provider_id, wallets, prompter, item, sleep=sleep)


# ============ Main loop ============


def choose_provider(client: PerpsClient, prompter: Prompter) -> Optional[dict[str, Any]]:
    providers = client.get_providers()
    if not providers:
        click.echo("No perpetuals providers available")
        return None
    if len(providers) == 1:
        provider = providers[0]
        click.echo(f"Provider: {provider.get('name')} ({provider.get('network')})\n")
        return provider
    return prompter.select(
        "Select perpetuals provider:",
        [Choice(f"{p.get('name')} ({p.get('network')})", p) for p in providers],
    )


def main_menu(client: PerpsClient, provider_id: str, wallets: WalletSet, prompter: Prompter) -> str:
    balance, positions, orders = fetch_concurrently(
        lambda: client.get_balances(provider_id, wallets.address),
        lambda: client.get_positions(provider_id, wallets.address),
        lambda: client.get_orders(provider_id, wallets.address),
    )
    print_account_summary(balance, positions, orders)
    return prompter.select("What would you like to do?", [Choice(text, key) for text, key in MAIN_MENU])


def perps_loop(
    client: PerpsClient,
    provider_id: str,
    wallets: WalletSet,
    prompter: Prompter,
    sleep: Sleep = time.sleep,
) -> None:
    click.echo("Fetching markets...\n")
    markets = client.fetch_all_markets(provider_id)
    click.echo(f"Loaded {len(markets)} markets\n")

    while True:
        choice = main_menu(client, provider_id, wallets, prompter)
        if choice == "exit":
            click.echo("\nGoodbye!\n")
            return

        try:
            if choice == "balance":
                show_balance(client, provider_id, wallets.address)
            elif choice == "positions":
                show_positions(client, provider_id, wallets, prompter, sleep=sleep)
            elif choice == "markets":
                show_markets(markets)
            elif choice == "trade":
                execute_trade(client, provider_id, wallets, prompter, markets, sleep=sleep)
            elif choice in (PerpActionType.FUND.value, PerpActionType.WITHDRAW.value):
                execute_account_action(client, provider_id, wallets, prompter, choice, sleep=sleep)
        except RecipeError as exc:
            report_error(exc)

        rule(width=60)
        prompter.text("Press Enter to continue...", default="")


@click.command()
def perps() -> None:
    """
    Trade perpetual futures.

    Requires MNEMONIC and PERPS_API_KEY.
    """
    try:
        settings = get_settings()
        client = open_client(PerpsClient, settings.perps)
        wallets = open_wallets(settings)
    except RecipeError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(exc.exit_code)

    click.echo("\nYield.xyz Perpetuals Trading API\n")
    click.echo(f"API URL: {settings.perps.base_url}\n")
    click.echo(f"Address: {wallets.address}\n")

    prompter = ClickPrompter()
    with client:
        provider = choose_provider(client, prompter)
        if provider is None:
            return
        perps_loop(client, provider["id"], wallets, prompter)
