"""
Yield.xyz Perps API client.

Perps transactions are mostly EIP-712 orders for off-chain order books;
a submit call returns the final state (filled, resting on the book or
failed), so there is no status endpoint to poll.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from .client import DEFAULT_PAGE_SIZE, ApiClient, fetch_all_pages
from .models import Action, GasOptions, Transaction


class PerpActionType(str, Enum):
    OPEN = "open"
    CLOSE = "close"
    UPDATE_LEVERAGE = "updateLeverage"
    STOP_LOSS = "stopLoss"
    TAKE_PROFIT = "takeProfit"
    CANCEL_ORDER = "cancelOrder"
    FUND = "fund"
    WITHDRAW = "withdraw"


ACTION_LABELS: dict[str, str] = {
    PerpActionType.OPEN.value: "Open Position",
    PerpActionType.CLOSE.value: "Close Position",
    PerpActionType.UPDATE_LEVERAGE.value: "Update Leverage",
    PerpActionType.STOP_LOSS.value: "Set Stop Loss",
    PerpActionType.TAKE_PROFIT.value: "Set Take Profit",
    PerpActionType.CANCEL_ORDER.value: "Cancel Order",
    PerpActionType.FUND.value: "Deposit Funds",
    PerpActionType.WITHDRAW.value: "Withdraw Funds",
}

# Only meaningful against an existing position
POSITION_ONLY_ACTIONS = frozenset({
    PerpActionType.CLOSE.value,
    PerpActionType.UPDATE_LEVERAGE.value,
    PerpActionType.STOP_LOSS.value,
    PerpActionType.TAKE_PROFIT.value,
})


def action_label(action_type: str) -> str:
    return ACTION_LABELS.get(action_type, action_type)


class PerpsClient(ApiClient):
    polls_status = False
    tracks_nonces = False

    def get_providers(self) -> list[dict[str, Any]]:
        return self.get("/v1/providers") or []

    def get_provider(self, provider_id: str) -> dict[str, Any]:
        return self.get(f"/v1/providers/{provider_id}")

    def argument_schemas(self, provider_id: str) -> dict[str, dict[str, Any]]:
        """Per-action argument schemas published by the provider."""
        provider = self.get_provider(provider_id) or {}
        return dict(provider.get("argumentSchemas") or {})

    def get_markets(
        self,
        provider_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, Any]:
        return self.get(
            "/v1/markets",
            params={"providerId": provider_id, "limit": limit, "offset": offset or None},
        )

    def fetch_all_markets(self, provider_id: str) -> list[dict[str, Any]]:
        return fetch_all_pages(
            lambda limit, offset: self.get_markets(provider_id, limit, offset),
            limit=DEFAULT_PAGE_SIZE,
        )

    def get_positions(self, provider_id: str, address: str) -> list[dict[str, Any]]:
        return self.post("/v1/positions", {"providerId": provider_id, "address": address}) or []

    def get_orders(self, provider_id: str, address: str) -> list[dict[str, Any]]:
        return self.post("/v1/orders", {"providerId": provider_id, "address": address}) or []

    def get_balances(self, provider_id: str, address: str) -> dict[str, Any]:
        return self.post("/v1/balances", {"providerId": provider_id, "address": address}) or {}

    def create_action(
        self,
        provider_id: str,
        action: str,
        address: str,
        args: dict[str, Any],
    ) -> Action:
        payload = self.post(
            "/v1/actions",
            {"providerId": provider_id, "action": action, "address": address, "args": args},
        )
        return Action.from_dict(payload)

    # ============ Transaction backend ============

    def gas_options(self, network: str) -> Optional[GasOptions]:
        return None

    def prepare(self, transaction: Transaction, gas_args: Optional[dict[str, Any]] = None) -> Transaction:
        return transaction

    def submit(self, transaction: Transaction, signed: str) -> dict[str, Any]:
        result = self.post(
            f"/v1/transactions/{transaction.id}/submit",
            {"signedPayload": signed},
        )
        return result or {}

    def poll_status(self, transaction: Transaction) -> dict[str, Any]:
        # final status arrives with the submit response
        return {}
