"""
Shared plumbing for the recipe commands.

Builds API clients and wallets from settings, prints action summaries,
and runs an action's transactions through the pipeline.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Optional, Sequence

import click

from ..config import DEFAULT_CROSS_CHAIN_DELAY, ApiSettings, Settings
from ..errors import ApiError, RecipeError
from ..pneuma.client import ApiClient, describe_api_error
from ..pneuma.models import Action
from ..pneuma.pipeline import (
    ConfirmationPolicy,
    CrossChainWait,
    FixedDelayWait,
    PipelineResult,
    TransactionBackend,
    TransactionPipeline,
)
from ..schema.prompts import Prompter
from ..sigil.signers import SigningAdapter
from ..sigil.wallets import WalletSet
from ..utils import display_value

logger = logging.getLogger(__name__)


def open_client(client_cls: type, api: ApiSettings) -> Any:
    """Instantiate an ApiClient subclass; raises ConfigError without a key."""
    client: ApiClient = client_cls(api.base_url, api.require_key())
    return client


def open_wallets(settings: Settings) -> WalletSet:
    wallets = WalletSet(settings.require_mnemonic(), settings.wallet_index)
    # Derive eagerly so a bad mnemonic fails before any menu is shown
    _ = wallets.address
    return wallets


def print_summary(title: str, rows: Sequence[tuple[str, Any]], arguments: dict[str, Any]) -> None:
    click.echo()
    click.secho(title, bold=True)
    for name, value in rows:
        click.echo(f"  {name}: {value}")
    for key, value in arguments.items():
        click.echo(f"  {key}: {display_value(value)}")


def report_error(exc: RecipeError) -> None:
    """Print a recoverable error inside an interactive menu."""
    if isinstance(exc, ApiError):
        message = describe_api_error(exc)
    else:
        message = str(exc)
    click.secho(f"\nError: {message}", fg="red")
    for line in getattr(exc, "errors", None) or []:
        click.secho(f"  - {line}", fg="red")
    click.echo()
    logger.debug("menu action failed", exc_info=exc)


def run_action(
    action: Action,
    backend: TransactionBackend,
    wallets: WalletSet,
    prompter: Optional[Prompter] = None,
    cross_chain_wait: Optional[CrossChainWait] = None,
    confirmation: Optional[ConfirmationPolicy] = None,
    step_delay: float = 0.0,
    cross_chain_delay: float = DEFAULT_CROSS_CHAIN_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> PipelineResult:
    """
    Sign, submit and confirm every step of ``action``.

    Raises:
        RecipeError: Any fatal pipeline failure
    """
    if not action.transactions:
        click.secho("Action has no transactions to process.", fg="yellow")
        return PipelineResult()
    logger.debug("processing action %s with %d steps", action.id, len(action.transactions))
    pipeline = TransactionPipeline(
        backend,
        SigningAdapter(),
        wallets,
        prompter=prompter,
        sleep=sleep,
        confirmation=confirmation,
        cross_chain_wait=cross_chain_wait or FixedDelayWait(cross_chain_delay),
        step_delay=step_delay,
    )
    return pipeline.process(action.transactions)


def print_error_body(exc: ApiError) -> None:
    """Dump the server's error body, pretty-printed when it is JSON."""
    if exc.body in (None, ""):
        return
    if isinstance(exc.body, (dict, list)):
        click.echo(json.dumps(exc.body, indent=2))
    else:
        click.echo(str(exc.body))
