"""
Transaction execution pipeline.

Drives the steps of an action, strictly in order:

1. Settled steps (CONFIRMED / BROADCASTED) are reported, never re-signed.
2. SKIPPED steps are passed over without touching the signer.
3. Every other step:
   a. waits for cross-chain settlement when the network changed,
   b. lets the user pick a gas mode when the network offers several,
   c. is prepared (retried under IDEMPOTENT_RETRY_POLICY),
   d. is signed through the SigningAdapter,
   e. is submitted exactly once (NO_RETRY_POLICY),
   f. is polled until confirmed, failed or out of attempts.

Rerunning a partially executed action is safe: whatever the server
already reports as settled is skipped.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Protocol, TypeVar

import click

from ..errors import (
    ApiError,
    ConfirmationTimeoutError,
    PreparationError,
    TransactionFailedError,
)
from ..schema.prompts import Choice, Prompter
from ..sigil.signers import SigningAdapter
from ..sigil.wallets import WalletSet
from .models import CUSTOM_GAS_MODE, GasOptions, Transaction, TransactionStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], None]


# ============ Policies ============


@dataclass(frozen=True)
class RetryPolicy:
    """
    Fixed-delay retry budget for one kind of operation.

    Attributes:
        name: Label used in log lines
        max_attempts: Total attempts including the first
        delay: Seconds between attempts
        retry_on: Exception types that trigger another attempt
    """

    name: str
    max_attempts: int = 1
    delay: float = 0.0
    retry_on: tuple[type[BaseException], ...] = (ApiError,)

    def run(self, operation: Callable[[], T], sleep: Sleep = time.sleep) -> T:
        attempt = 1
        while True:
            try:
                return operation()
            except self.retry_on as exc:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    "%s: attempt %d/%d failed (%s), retrying in %.1fs",
                    self.name, attempt, self.max_attempts, exc, self.delay,
                )
                attempt += 1
                sleep(self.delay)


# Preparation only re-derives an unsigned payload server-side; safe to repeat.
IDEMPOTENT_RETRY_POLICY = RetryPolicy("prepare", max_attempts=3, delay=2.0)
# Submission may broadcast; the client cannot tell whether a failed call landed.
NO_RETRY_POLICY = RetryPolicy("submit", max_attempts=1)


@dataclass(frozen=True)
class ConfirmationPolicy:
    """
    How long to poll for confirmation and what a bad outcome means.

    Attributes:
        interval: Seconds between status polls
        max_attempts: Poll budget; None polls until a final status
        raise_on_failure: FAILED status raises TransactionFailedError
        raise_on_timeout: Exhausted budget raises ConfirmationTimeoutError
            instead of warning and moving to the next step
    """

    interval: float = 2.0
    max_attempts: Optional[int] = 60
    raise_on_failure: bool = True
    raise_on_timeout: bool = False


# ============ Cross-chain waits ============


class CrossChainWait(Protocol):
    def wait(self, previous_network: str, transaction: Transaction, sleep: Sleep) -> None:
        ...


@dataclass(frozen=True)
class FixedDelayWait:
    seconds: float = 5.0

    def wait(self, previous_network: str, transaction: Transaction, sleep: Sleep) -> None:
        click.echo(
            f"Cross-chain transaction detected ({previous_network} -> {transaction.network}). "
            f"Waiting {self.seconds:g}s for funds to arrive..."
        )
        sleep(self.seconds)


@dataclass(frozen=True)
class BalanceArrivalWait:
    """
    Poll a balance on the destination network until the expected amount arrives.

    ``fetch_balance`` returns the current amount for the step's network, or
    None when the balance cannot be observed there; in that case the
    ``fallback`` wait is used instead. Funds count as arrived once the
    balance reaches ``baseline + expected``, where ``baseline`` is the
    balance observed before the action started.
    """

    fetch_balance: Callable[[Transaction], Optional[float]]
    expected: float
    baseline: float = 0.0
    interval: float = 5.0
    max_attempts: int = 60
    fallback: CrossChainWait = field(default_factory=FixedDelayWait)

    def wait(self, previous_network: str, transaction: Transaction, sleep: Sleep) -> None:
        click.echo(
            f"Cross-chain transaction detected ({previous_network} -> {transaction.network}). "
            "Waiting for funds to arrive..."
        )
        target = self.baseline + self.expected
        for attempt in range(self.max_attempts):
            try:
                balance = self.fetch_balance(transaction)
            except ApiError as exc:
                logger.debug("balance lookup failed: %s", exc)
                balance = 0.0
            if balance is None:
                self.fallback.wait(previous_network, transaction, sleep)
                return
            if balance >= target:
                click.echo(f"  Funds arrived on {transaction.network}: {balance:g}")
                return
            click.echo(".", nl=False)
            sleep(self.interval)
        click.echo()
        click.secho(
            f"Warning: expected balance not observed on {transaction.network}, continuing...",
            fg="yellow",
        )


# ============ Backend contract ============


class TransactionBackend(Protocol):
    polls_status: bool
    tracks_nonces: bool

    def gas_options(self, network: str) -> Optional[GasOptions]:
        ...

    def prepare(self, transaction: Transaction, gas_args: Optional[dict[str, Any]] = None) -> Transaction:
        ...

    def submit(self, transaction: Transaction, signed: str) -> dict[str, Any]:
        ...

    def poll_status(self, transaction: Transaction) -> dict[str, Any]:
        ...


# ============ Results ============


@dataclass(frozen=True)
class StepOutcome:
    transaction: Transaction
    outcome: str
    signed: bool = False


@dataclass
class PipelineResult:
    steps: list[StepOutcome] = field(default_factory=list)

    def add(self, transaction: Transaction, outcome: str, signed: bool = False) -> None:
        self.steps.append(StepOutcome(transaction, outcome, signed))

    @property
    def submitted(self) -> list[str]:
        return [s.transaction.id for s in self.steps if s.signed]

    def outcome_of(self, transaction_id: str) -> Optional[str]:
        for step in self.steps:
            if step.transaction.id == transaction_id:
                return step.outcome
        return None


# ============ Pipeline ============


def show_transaction_info(transaction: Transaction, indent: str = "  ") -> None:
    if transaction.hash:
        click.echo(f"{indent}Hash: {transaction.hash}")
    if transaction.explorer_url:
        click.echo(f"{indent}Explorer: {transaction.explorer_url}")


class TransactionPipeline:
    """
    Execute the transaction steps of one action.

    Args:
        backend: API flavour implementing TransactionBackend
        signer: Signing adapter dispatching on signing format
        wallets: Derived signer instances
        prompter: Used for gas-mode selection; without one the first
            named mode is taken
        sleep: Injected for tests
        track_nonces: Offset EVM nonces client-side; defaults to the
            backend's ``tracks_nonces``
        confirmation: Polling and failure policy
        cross_chain_wait: Gate run between steps on different networks
        prepare_policy: Retry policy for preparation
        submit_policy: Retry policy for submission
        step_delay: Pause between consecutive submitted steps
    """

    def __init__(
        self,
        backend: TransactionBackend,
        signer: SigningAdapter,
        wallets: WalletSet,
        prompter: Optional[Prompter] = None,
        sleep: Sleep = time.sleep,
        track_nonces: Optional[bool] = None,
        confirmation: Optional[ConfirmationPolicy] = None,
        cross_chain_wait: Optional[CrossChainWait] = None,
        prepare_policy: RetryPolicy = IDEMPOTENT_RETRY_POLICY,
        submit_policy: RetryPolicy = NO_RETRY_POLICY,
        step_delay: float = 0.0,
    ) -> None:
        self.backend = backend
        self.signer = signer
        self.wallets = wallets
        self.prompter = prompter
        self.sleep = sleep
        if track_nonces is None:
            track_nonces = bool(getattr(backend, "tracks_nonces", False))
        self.track_nonces = track_nonces
        self.confirmation = confirmation or ConfirmationPolicy()
        self.cross_chain_wait = cross_chain_wait or FixedDelayWait()
        self.prepare_policy = prepare_policy
        self.submit_policy = submit_policy
        self.step_delay = step_delay

    def process(self, transactions: Iterable[Transaction]) -> PipelineResult:
        """
        Process steps in order.

        Raises:
            PreparationError: Preparation failed after every retry
            SigningError: Payload could not be signed
            ApiError: Submission failed
            TransactionFailedError: A step reported FAILED (per policy)
            ConfirmationTimeoutError: Polling budget exhausted (per policy)
        """
        steps = list(transactions)
        total = len(steps)
        result = PipelineResult()
        previous_network: Optional[str] = None
        nonce_offset = 0

        for position, tx in enumerate(steps, start=1):
            heading = f"Step {position}/{total}: {tx.type or 'TRANSACTION'}"

            if tx.is_settled:
                click.echo(f"{heading} (already {tx.status.lower()})")
                show_transaction_info(tx)
                result.add(tx, "settled")
                previous_network = tx.network or previous_network
                continue

            if tx.is_skipped:
                click.echo(f"{heading} (skipped)")
                result.add(tx, "skipped")
                continue

            click.echo()
            click.secho(heading, bold=True)

            if previous_network and tx.network and tx.network != previous_network:
                self.cross_chain_wait.wait(previous_network, tx, self.sleep)

            gas_args, supported = self._choose_gas(tx)
            if not supported:
                click.secho(
                    "  Custom gas mode is not supported, skipping this step.",
                    fg="yellow",
                )
                result.add(tx, "unsupported-gas")
                continue

            prepared = self._prepare(tx, gas_args)
            if prepared.payload in (None, "", {}):
                click.secho("  Skipping: no unsigned transaction data", fg="yellow")
                result.add(prepared, "no-payload")
                continue

            click.echo("  Signing...")
            signed = self.signer.sign(
                prepared,
                self.wallets,
                nonce_offset=nonce_offset if self.track_nonces else 0,
            )
            if self.track_nonces:
                nonce_offset += 1

            click.echo("  Submitting...")
            response = self.submit_policy.run(
                lambda: self.backend.submit(prepared, signed), sleep=self.sleep
            )
            submitted = prepared.merged(response or {})
            outcome = self._confirm(submitted)
            result.add(submitted, outcome, signed=True)
            previous_network = submitted.network or previous_network

            if self.step_delay and position < total:
                self.sleep(self.step_delay)

        return result

    # ---- steps ----

    def _choose_gas(self, tx: Transaction) -> tuple[Optional[dict[str, Any]], bool]:
        if not tx.network:
            return None, True
        options = self.backend.gas_options(tx.network)
        if options is None or not options.customisable or not options.modes:
            return None, True

        if self.prompter is None:
            return dict(options.modes[0].gas_args), True

        denom = f" ({options.denom})" if options.denom else ""
        choices = [Choice(m.name, m) for m in options.modes]
        choices.append(Choice(CUSTOM_GAS_MODE.name, CUSTOM_GAS_MODE))
        mode = self.prompter.select(
            f"Which gas mode would you like to use on {tx.network}{denom}?",
            choices,
        )
        if mode.is_custom:
            return None, False
        return dict(mode.gas_args), True

    def _prepare(self, tx: Transaction, gas_args: Optional[dict[str, Any]]) -> Transaction:
        try:
            return self.prepare_policy.run(
                lambda: self.backend.prepare(tx, gas_args), sleep=self.sleep
            )
        except ApiError as exc:
            raise PreparationError(
                f"Could not prepare transaction {tx.id} after "
                f"{self.prepare_policy.max_attempts} attempts: {exc}"
            ) from exc

    def _confirm(self, tx: Transaction) -> str:
        status = tx.status
        if status == TransactionStatus.CONFIRMED.value:
            click.secho(f"  Confirmed immediately (Transaction ID: {tx.id})", fg="green")
            show_transaction_info(tx, indent="    ")
            _show_fill_price(tx)
            return "confirmed"
        if status == TransactionStatus.FAILED.value:
            return self._failed(tx)

        if not getattr(self.backend, "polls_status", True):
            if status == TransactionStatus.BROADCASTED.value:
                click.echo(f"  Order placed (Transaction ID: {tx.id})")
                show_transaction_info(tx, indent="    ")
                click.echo("    Status: On the order book")
                return "broadcasted"
            click.echo(f"  Transaction status: {status} (Transaction ID: {tx.id})")
            show_transaction_info(tx, indent="    ")
            return "submitted"

        click.echo("  Submitted!")
        show_transaction_info(tx, indent="    ")
        click.echo("  Waiting for confirmation", nl=False)

        attempts = 0
        policy = self.confirmation
        while policy.max_attempts is None or attempts < policy.max_attempts:
            self.sleep(policy.interval)
            attempts += 1
            try:
                update = self.backend.poll_status(tx)
            except ApiError as exc:
                logger.debug("status poll for %s failed: %s", tx.id, exc)
                click.echo(".", nl=False)
                continue

            tx = tx.merged(update or {})
            if tx.status == TransactionStatus.CONFIRMED.value:
                click.echo()
                click.secho("  Confirmed!", fg="green")
                show_transaction_info(tx, indent="    ")
                return "confirmed"
            if tx.status == TransactionStatus.FAILED.value:
                click.echo()
                return self._failed(tx)
            click.echo(".", nl=False)

        click.echo()
        if policy.raise_on_timeout:
            raise ConfirmationTimeoutError(
                f"Transaction {tx.id} not confirmed after {attempts} attempts",
                transaction_id=tx.id,
            )
        click.secho("  Warning: Transaction confirmation timeout, continuing...", fg="yellow")
        return "timeout"

    def _failed(self, tx: Transaction) -> str:
        click.secho(f"  Transaction failed! (Transaction ID: {tx.id})", fg="red")
        show_transaction_info(tx, indent="    ")
        if self.confirmation.raise_on_failure:
            raise TransactionFailedError(f"Transaction {tx.id} failed", transaction_id=tx.id)
        return "failed"


def _show_fill_price(tx: Transaction) -> None:
    details = tx.raw.get("details")
    if isinstance(details, dict) and details.get("fillPrice"):
        click.echo(f"    Fill Price: ${details['fillPrice']}")
