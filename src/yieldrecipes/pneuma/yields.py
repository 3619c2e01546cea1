"""
Yield.xyz Yields API client.

Actions are created against a yield id; gas is priced server-side, so
transaction steps arrive ready to sign and the client only has to manage
nonces across consecutive EVM steps.
"""

from __future__ import annotations

from typing import Any, Optional

from .client import DEFAULT_PAGE_SIZE, ApiClient, fetch_all_pages
from .models import Action, GasOptions, Transaction, Validator


class YieldsClient(ApiClient):
    polls_status = True
    tracks_nonces = True

    # ============ Discovery ============

    def get_yields(
        self,
        network: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, Any]:
        return self.get(
            "/v1/yields",
            params={"network": network, "limit": limit, "offset": offset or None},
        )

    def fetch_all_yields(self, network: Optional[str] = None) -> list[dict[str, Any]]:
        return fetch_all_pages(
            lambda limit, offset: self.get_yields(network=network, limit=limit, offset=offset),
            limit=DEFAULT_PAGE_SIZE,
        )

    def get_validators(
        self,
        yield_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, Any]:
        return self.get(
            f"/v1/yields/{yield_id}/validators",
            params={"limit": limit, "offset": offset or None},
        )

    def list_validators(self, yield_id: str) -> list[Validator]:
        """First 100 validators, for selection prompts."""
        page = self.get_validators(yield_id, limit=DEFAULT_PAGE_SIZE, offset=0)
        return [Validator.from_dict(v) for v in page.get("items") or []]

    def get_balances(self, yield_id: str, address: str) -> dict[str, Any]:
        return self.post(f"/v1/yields/{yield_id}/balances", {"address": address})

    # ============ Actions ============

    def enter(self, yield_id: str, address: str, arguments: dict[str, Any]) -> Action:
        payload = self.post(
            "/v1/actions/enter",
            {"yieldId": yield_id, "address": address, "arguments": arguments},
        )
        return Action.from_dict(payload)

    def exit(self, yield_id: str, address: str, arguments: dict[str, Any]) -> Action:
        payload = self.post(
            "/v1/actions/exit",
            {"yieldId": yield_id, "address": address, "arguments": arguments},
        )
        return Action.from_dict(payload)

    def manage(
        self,
        yield_id: str,
        address: str,
        action: str,
        passthrough: str,
        arguments: dict[str, Any],
    ) -> Action:
        payload = self.post(
            "/v1/actions/manage",
            {
                "yieldId": yield_id,
                "address": address,
                "action": action,
                "passthrough": passthrough,
                "arguments": arguments,
            },
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
            {"signedTransaction": signed},
        )
        return result or {}

    def poll_status(self, transaction: Transaction) -> dict[str, Any]:
        return self.get(f"/v1/transactions/{transaction.id}") or {}
