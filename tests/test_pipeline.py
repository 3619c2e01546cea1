"""Tests for the transaction execution pipeline."""

from __future__ import annotations

import pytest

from conftest import FakeBackend, FakeSigner, ScriptedPrompter, SleepRecorder, tx
from yieldrecipes.errors import (
    ApiError,
    ConfirmationTimeoutError,
    PreparationError,
    TransactionFailedError,
)
from yieldrecipes.pneuma.models import GasMode, GasOptions
from yieldrecipes.pneuma.pipeline import (
    IDEMPOTENT_RETRY_POLICY,
    NO_RETRY_POLICY,
    BalanceArrivalWait,
    ConfirmationPolicy,
    FixedDelayWait,
    RetryPolicy,
    TransactionPipeline,
)
from yieldrecipes.sigil.wallets import WalletSet


class RecordingWait:
    def __init__(self, backend: FakeBackend | None = None) -> None:
        self.backend = backend
        self.calls: list[tuple[str, str]] = []

    def wait(self, previous_network, transaction, sleep) -> None:
        self.calls.append((previous_network, transaction.id))
        if self.backend is not None:
            self.backend.calls.append(("wait", transaction.id))


def make_pipeline(
    backend: FakeBackend,
    signer: FakeSigner,
    wallets: WalletSet,
    sleeper: SleepRecorder,
    **kwargs,
) -> TransactionPipeline:
    return TransactionPipeline(backend, signer, wallets, sleep=sleeper, **kwargs)


# ============ Step ordering ============


class TestStepHandling:
    """Settled, skipped and pending steps."""

    def test_mixed_action_submits_two_and_waits_before_network_switch(
        self, wallets: WalletSet, sleeper: SleepRecorder
    ) -> None:
        backend = FakeBackend()
        signer = FakeSigner()
        gate = RecordingWait(backend)
        pipeline = make_pipeline(backend, signer, wallets, sleeper, cross_chain_wait=gate)

        result = pipeline.process([
            tx("t1", "ethereum"),
            tx("t2", "ethereum", status="SKIPPED"),
            tx("t3", "polygon"),
        ])

        assert backend.ids("submit") == ["t1", "t3"]
        assert result.submitted == ["t1", "t3"]
        assert result.outcome_of("t2") == "skipped"
        assert [tx_id for tx_id, _ in signer.signed] == ["t1", "t3"]
        assert gate.calls == [("ethereum", "t3")]
        assert backend.calls.index(("submit", "t1")) < backend.calls.index(("wait", "t3"))
        assert backend.calls.index(("wait", "t3")) < backend.calls.index(("prepare", "t3"))

    def test_settled_steps_are_never_signed(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend()
        signer = FakeSigner()
        pipeline = make_pipeline(backend, signer, wallets, sleeper)

        result = pipeline.process([
            tx("done", status="CONFIRMED", hash="0xabc"),
            tx("sent", status="BROADCASTED"),
            tx("next"),
        ])

        assert signer.signed == [("next", 0)]
        assert backend.ids("prepare") == ["next"]
        assert result.outcome_of("done") == "settled"
        assert result.outcome_of("sent") == "settled"

    def test_settled_step_sets_network_for_cross_chain_check(
        self, wallets: WalletSet, sleeper: SleepRecorder
    ) -> None:
        gate = RecordingWait()
        pipeline = make_pipeline(FakeBackend(), FakeSigner(), wallets, sleeper, cross_chain_wait=gate)

        pipeline.process([tx("a", "ethereum", status="CONFIRMED"), tx("b", "base")])

        assert gate.calls == [("ethereum", "b")]

    def test_same_network_never_waits(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        gate = RecordingWait()
        pipeline = make_pipeline(FakeBackend(), FakeSigner(), wallets, sleeper, cross_chain_wait=gate)

        pipeline.process([tx("a"), tx("b"), tx("c")])

        assert gate.calls == []

    def test_empty_payload_is_skipped_without_signing(
        self, wallets: WalletSet, sleeper: SleepRecorder
    ) -> None:
        backend = FakeBackend()
        signer = FakeSigner()
        pipeline = make_pipeline(backend, signer, wallets, sleeper)

        result = pipeline.process([tx("empty", unsignedTransaction="")])

        assert signer.signed == []
        assert backend.ids("submit") == []
        assert result.outcome_of("empty") == "no-payload"

    def test_step_delay_between_steps_only(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(polls_status=False)
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper, step_delay=1.0)

        pipeline.process([tx("a"), tx("b")])

        assert sleeper.calls == [1.0]


# ============ Nonces ============


class TestNonceTracking:
    """Client-side nonce offsets for consecutive EVM steps."""

    def test_offsets_increase_when_backend_tracks_nonces(
        self, wallets: WalletSet, sleeper: SleepRecorder
    ) -> None:
        signer = FakeSigner()
        pipeline = make_pipeline(FakeBackend(tracks_nonces=True), signer, wallets, sleeper)

        pipeline.process([
            tx("a"),
            tx("skip", status="SKIPPED"),
            tx("b"),
            tx("done", status="CONFIRMED"),
            tx("sent", status="BROADCASTED"),
            tx("c"),
        ])

        assert signer.signed == [("a", 0), ("b", 1), ("c", 2)]

    def test_offsets_stay_zero_when_server_assigns_nonces(
        self, wallets: WalletSet, sleeper: SleepRecorder
    ) -> None:
        signer = FakeSigner()
        pipeline = make_pipeline(FakeBackend(tracks_nonces=False), signer, wallets, sleeper)

        pipeline.process([tx("a"), tx("b")])

        assert signer.signed == [("a", 0), ("b", 0)]


# ============ Gas modes ============


GAS = GasOptions(
    customisable=True,
    denom="gwei",
    modes=(
        GasMode("slow", {"gasPrice": "1"}),
        GasMode("fast", {"gasPrice": "5"}),
    ),
)


class TestGasSelection:
    """Gas mode prompt before preparation."""

    def test_selected_mode_is_passed_to_prepare(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(gas={"ethereum": GAS})
        prompter = ScriptedPrompter("fast")
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper, prompter=prompter)

        pipeline.process([tx("a")])

        assert backend.gas_args["a"] == {"gasPrice": "5"}
        assert prompter.offered[0] == ["slow", "fast", "custom"]

    def test_custom_mode_skips_only_that_step(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(gas={"ethereum": GAS})
        prompter = ScriptedPrompter("custom", "slow")
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper, prompter=prompter)

        result = pipeline.process([tx("a"), tx("b")])

        assert result.outcome_of("a") == "unsupported-gas"
        assert backend.ids("prepare") == ["b"]
        assert result.submitted == ["b"]

    def test_without_prompter_first_mode_is_used(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(gas={"ethereum": GAS})
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper)

        pipeline.process([tx("a")])

        assert backend.gas_args["a"] == {"gasPrice": "1"}

    def test_non_customisable_network_is_not_prompted(
        self, wallets: WalletSet, sleeper: SleepRecorder
    ) -> None:
        fixed = GasOptions(customisable=False, modes=GAS.modes)
        backend = FakeBackend(gas={"ethereum": fixed})
        prompter = ScriptedPrompter()
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper, prompter=prompter)

        pipeline.process([tx("a")])

        assert prompter.asked == []
        assert backend.gas_args["a"] is None


# ============ Retry policies ============


class TestRetryPolicies:
    """Preparation retries; submission never does."""

    def test_policy_constants(self) -> None:
        assert IDEMPOTENT_RETRY_POLICY.max_attempts > 1
        assert NO_RETRY_POLICY.max_attempts == 1

    def test_prepare_recovers_within_budget(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(prepared={"a": [ApiError("busy", 503), ApiError("busy", 503), {}]})
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper)

        result = pipeline.process([tx("a")])

        assert backend.ids("prepare") == ["a", "a", "a"]
        assert result.submitted == ["a"]
        assert sleeper.calls[:2] == [IDEMPOTENT_RETRY_POLICY.delay] * 2

    def test_prepare_exhausted_raises_preparation_error(
        self, wallets: WalletSet, sleeper: SleepRecorder
    ) -> None:
        backend = FakeBackend(prepared={"a": [ApiError("down", 500)] * 3})
        signer = FakeSigner()
        pipeline = make_pipeline(backend, signer, wallets, sleeper)

        with pytest.raises(PreparationError):
            pipeline.process([tx("a")])
        assert signer.signed == []

    def test_submit_failure_is_not_retried(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(submit_error=ApiError("rejected", 400))
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper)

        with pytest.raises(ApiError):
            pipeline.process([tx("a")])
        assert backend.ids("submit") == ["a"]

    def test_retry_policy_only_catches_listed_errors(self) -> None:
        calls = []

        def boom() -> None:
            calls.append(1)
            raise KeyError("x")

        policy = RetryPolicy("test", max_attempts=3, delay=0.0)
        with pytest.raises(KeyError):
            policy.run(boom, sleep=lambda s: None)
        assert len(calls) == 1


# ============ Confirmation ============


class TestConfirmation:
    """Polling, failure and timeout handling."""

    def test_polls_until_confirmed(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(
            submit_responses={"a": {"status": "BROADCASTED"}},
            polls={"a": [{"status": "PENDING"}, ApiError("flaky"), {"status": "CONFIRMED", "hash": "0x1"}]},
        )
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper)

        result = pipeline.process([tx("a")])

        assert backend.ids("poll") == ["a", "a", "a"]
        assert result.outcome_of("a") == "confirmed"

    def test_immediate_confirmation_skips_polling(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(submit_responses={"a": {"status": "CONFIRMED"}})
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper)

        result = pipeline.process([tx("a")])

        assert backend.ids("poll") == []
        assert result.outcome_of("a") == "confirmed"

    def test_failed_status_raises_by_default(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(polls={"a": [{"status": "FAILED"}]})
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper)

        with pytest.raises(TransactionFailedError) as excinfo:
            pipeline.process([tx("a"), tx("b")])
        assert excinfo.value.transaction_id == "a"
        assert backend.ids("submit") == ["a"]

    def test_failed_status_can_continue(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(polls={"a": [{"status": "FAILED"}]})
        policy = ConfirmationPolicy(interval=0.0, raise_on_failure=False)
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper, confirmation=policy)

        result = pipeline.process([tx("a"), tx("b")])

        assert result.outcome_of("a") == "failed"
        assert result.submitted == ["a", "b"]

    def test_timeout_warns_and_continues(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(polls={"a": [{"status": "PENDING"}]})
        policy = ConfirmationPolicy(interval=0.5, max_attempts=3)
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper, confirmation=policy)

        result = pipeline.process([tx("a"), tx("b")])

        assert result.outcome_of("a") == "timeout"
        assert backend.ids("poll").count("a") == 3
        assert "b" in result.submitted

    def test_timeout_can_raise(self, wallets: WalletSet, sleeper: SleepRecorder) -> None:
        backend = FakeBackend(polls={"a": [{"status": "PENDING"}]})
        policy = ConfirmationPolicy(interval=0.0, max_attempts=2, raise_on_timeout=True)
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper, confirmation=policy)

        with pytest.raises(ConfirmationTimeoutError):
            pipeline.process([tx("a")])

    def test_non_polling_backend_reports_order_book(
        self, wallets: WalletSet, sleeper: SleepRecorder, capsys: pytest.CaptureFixture[str]
    ) -> None:
        backend = FakeBackend(
            polls_status=False,
            submit_responses={"a": {"status": "BROADCASTED"}},
        )
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper)

        result = pipeline.process([tx("a")])

        assert backend.ids("poll") == []
        assert result.outcome_of("a") == "broadcasted"
        assert "On the order book" in capsys.readouterr().out

    def test_fill_price_is_reported(
        self, wallets: WalletSet, sleeper: SleepRecorder, capsys: pytest.CaptureFixture[str]
    ) -> None:
        backend = FakeBackend(
            polls_status=False,
            submit_responses={"a": {"status": "CONFIRMED", "details": {"fillPrice": "64000.5"}}},
        )
        pipeline = make_pipeline(backend, FakeSigner(), wallets, sleeper)

        pipeline.process([tx("a")])

        assert "Fill Price: $64000.5" in capsys.readouterr().out


# ============ Cross-chain waits ============


class TestCrossChainWaits:
    """Fixed delay and balance arrival gates."""

    def test_fixed_delay_sleeps(self, sleeper: SleepRecorder) -> None:
        FixedDelayWait(7.5).wait("ethereum", tx("b", "base"), sleeper)
        assert sleeper.calls == [7.5]

    def test_balance_wait_returns_once_funds_arrive(self, sleeper: SleepRecorder) -> None:
        readings = iter([0.0, ApiError("lag"), 1.5])

        def fetch(_tx):
            value = next(readings)
            if isinstance(value, Exception):
                raise value
            return value

        gate = BalanceArrivalWait(fetch, expected=1.0, interval=2.0)
        gate.wait("ethereum", tx("b", "base"), sleeper)

        assert sleeper.calls == [2.0, 2.0]

    def test_balance_wait_measures_increase_over_baseline(self, sleeper: SleepRecorder) -> None:
        readings = iter([100.0, 100.0, 110.0])
        gate = BalanceArrivalWait(lambda _tx: next(readings), expected=10.0, baseline=100.0, interval=1.0)

        gate.wait("arbitrum", tx("t2", "ethereum"), sleeper)

        assert sleeper.calls == [1.0, 1.0]

    def test_balance_wait_falls_back_when_unobservable(self, sleeper: SleepRecorder) -> None:
        gate = BalanceArrivalWait(lambda _tx: None, expected=1.0, fallback=FixedDelayWait(3.0))
        gate.wait("ethereum", tx("b", "solana"), sleeper)
        assert sleeper.calls == [3.0]

    def test_balance_wait_gives_up_after_budget(
        self, sleeper: SleepRecorder, capsys: pytest.CaptureFixture[str]
    ) -> None:
        gate = BalanceArrivalWait(lambda _tx: 0.0, expected=1.0, interval=1.0, max_attempts=4)
        gate.wait("ethereum", tx("b", "base"), sleeper)

        assert sleeper.calls == [1.0] * 4
        assert "expected balance not observed on base" in capsys.readouterr().out
