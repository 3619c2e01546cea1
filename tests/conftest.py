"""
Shared fixtures: scripted prompts and a fake transaction backend.

Nothing here touches the network; every API interaction in the tests
goes through ``FakeBackend`` or an ``httpx.MockTransport``.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import pytest
from click.testing import CliRunner

from yieldrecipes.pneuma.models import GasOptions, Transaction
from yieldrecipes.schema.prompts import ChoiceLike, Validator, as_choices
from yieldrecipes.sigil.wallets import WalletSet


# Well-known Hardhat development mnemonic (never holds real funds)
HARDHAT_MNEMONIC = "test test test test test test test test test test test junk"
HARDHAT_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


# ============ Prompts ============


class ScriptedPrompter:
    """
    Prompter that answers from a queue.

    ``select``/``autocomplete`` answers are matched against choice labels
    (exact first, then prefix); a callable answer receives the choice list.
    ``text`` answers are run through the validator; rejected answers are
    recorded in ``errors`` and the next queued answer is used, like a user
    retyping at the terminal.
    """

    def __init__(self, *answers: Any) -> None:
        self.answers = list(answers)
        self.asked: list[tuple[str, str]] = []
        self.offered: list[list[str]] = []
        self.errors: list[str] = []

    def _next(self, kind: str, message: str) -> Any:
        self.asked.append((kind, message))
        if not self.answers:
            raise AssertionError(f"No scripted answer for {kind}: {message!r}")
        return self.answers.pop(0)

    def _pick(self, kind: str, message: str, choices: Sequence[ChoiceLike]) -> Any:
        options = as_choices(choices)
        self.offered.append([c.label for c in options])
        answer = self._next(kind, message)
        if callable(answer):
            return answer(options)
        for choice in options:
            if choice.label == answer:
                return choice.resolved()
        for choice in options:
            if choice.label.startswith(str(answer)):
                return choice.resolved()
        raise AssertionError(f"{answer!r} is not one of {[c.label for c in options]}")

    def select(self, message: str, choices: Sequence[ChoiceLike]) -> Any:
        return self._pick("select", message, choices)

    def autocomplete(self, message: str, choices: Sequence[ChoiceLike]) -> Any:
        return self._pick("autocomplete", message, choices)

    def text(
        self,
        message: str,
        default: Optional[str] = None,
        validate: Optional[Validator] = None,
    ) -> str:
        while True:
            answer = self._next("text", message)
            value = default if answer is None else str(answer)
            value = value or ""
            error = validate(value) if validate else None
            if error is None:
                return value
            self.errors.append(error)

    def confirm(self, message: str, default: bool = False) -> bool:
        answer = self._next("confirm", message)
        return default if answer is None else bool(answer)


# ============ Transaction backend ============


class FakeBackend:
    """
    In-memory TransactionBackend.

    Args:
        polls_status: Whether the pipeline should poll after submit
        tracks_nonces: Whether EVM nonces are offset client-side
        gas: ``network -> GasOptions``
        prepared: ``tx id -> payload dict merged on prepare`` (or an
            exception instance / list of them to raise first)
        submit_responses: ``tx id -> response dict``
        polls: ``tx id -> list of status responses`` (exceptions are raised)
    """

    def __init__(
        self,
        polls_status: bool = True,
        tracks_nonces: bool = False,
        gas: Optional[dict[str, GasOptions]] = None,
        prepared: Optional[dict[str, Any]] = None,
        submit_responses: Optional[dict[str, dict[str, Any]]] = None,
        polls: Optional[dict[str, list[Any]]] = None,
        submit_error: Optional[Exception] = None,
    ) -> None:
        self.polls_status = polls_status
        self.tracks_nonces = tracks_nonces
        self.gas = gas or {}
        self.prepared = prepared or {}
        self.submit_responses = submit_responses or {}
        self.polls = {k: list(v) for k, v in (polls or {}).items()}
        self.submit_error = submit_error
        self.calls: list[tuple[str, str]] = []
        self.gas_args: dict[str, Any] = {}
        self.signed: dict[str, str] = {}

    def gas_options(self, network: str) -> Optional[GasOptions]:
        self.calls.append(("gas", network))
        return self.gas.get(network)

    def prepare(self, transaction: Transaction, gas_args: Optional[dict[str, Any]] = None) -> Transaction:
        self.calls.append(("prepare", transaction.id))
        self.gas_args[transaction.id] = gas_args
        scripted = self.prepared.get(transaction.id)
        if isinstance(scripted, list):
            item = scripted.pop(0) if scripted else {}
            if isinstance(item, Exception):
                raise item
            scripted = item
        elif isinstance(scripted, Exception):
            raise scripted
        return transaction.merged(scripted or {})

    def submit(self, transaction: Transaction, signed: str) -> dict[str, Any]:
        self.calls.append(("submit", transaction.id))
        if self.submit_error is not None:
            raise self.submit_error
        self.signed[transaction.id] = signed
        return dict(self.submit_responses.get(transaction.id, {"status": "BROADCASTED"}))

    def poll_status(self, transaction: Transaction) -> dict[str, Any]:
        self.calls.append(("poll", transaction.id))
        queue = self.polls.get(transaction.id) or [{"status": "CONFIRMED"}]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return dict(item)

    def ids(self, kind: str) -> list[str]:
        return [tx_id for call, tx_id in self.calls if call == kind]


class FakeSigner:
    """Records what would have been signed, with which nonce offset."""

    def __init__(self) -> None:
        self.signed: list[tuple[str, int]] = []

    def sign(self, transaction: Transaction, wallets: WalletSet, nonce_offset: int = 0) -> str:
        self.signed.append((transaction.id, nonce_offset))
        return f"0xsigned-{transaction.id}"


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def tx(tx_id: str, network: str = "ethereum", status: str = "CREATED", **extra: Any) -> Transaction:
    payload: dict[str, Any] = {"id": tx_id, "network": network, "status": status}
    payload.setdefault("unsignedTransaction", '{"to": "0x0000000000000000000000000000000000000001", "nonce": 7}')
    payload.update(extra)
    return Transaction.from_dict(payload)


# ============ Fixtures ============


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def wallets() -> WalletSet:
    return WalletSet(HARDHAT_MNEMONIC)


@pytest.fixture()
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> Callable[..., None]:
    """Clear recipe variables and run from an empty directory (no .env)."""
    for name in (
        "MNEMONIC", "WALLET_INDEX", "API_KEY", "API_ENDPOINT",
        "YIELDS_API_KEY", "YIELDS_API_URL", "PERPS_API_KEY", "PERPS_API_URL",
        "YIELD_RECIPES_CROSS_CHAIN_DELAY",
    ):
        # setenv first so values loaded from a .env during the test are undone
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)

    def set_env(**values: str) -> None:
        for key, value in values.items():
            monkeypatch.setenv(key, value)

    return set_env
