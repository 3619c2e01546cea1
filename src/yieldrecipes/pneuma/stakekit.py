"""
Legacy StakeKit API client.

Unlike the Yields API, StakeKit hands out transaction stubs: each step
must be prepared (``PATCH /v1/transactions/{id}``) with the chosen gas
arguments before an unsigned payload exists. The server assigns nonces.
"""

from __future__ import annotations

from typing import Any, Optional

from .client import ApiClient
from .models import Action, GasOptions, Transaction, Validator


class StakeKitClient(ApiClient):
    polls_status = True
    tracks_nonces = False

    # ============ Discovery ============

    def enabled_yields(self) -> list[dict[str, Any]]:
        payload = self.get("/v1/yields/enabled")
        if isinstance(payload, dict):
            return list(payload.get("data") or [])
        return list(payload or [])

    def get_yield(self, integration_id: str) -> dict[str, Any]:
        return self.get(f"/v1/yields/{integration_id}")

    def get_validators(self, integration_id: str) -> list[Validator]:
        """Flatten the v2 ``[{validators: [...]}, ...]`` response."""
        payload = self.get(f"/v2/yields/{integration_id}/validators") or []
        if isinstance(payload, dict):
            payload = [payload]
        validators: list[Validator] = []
        for group in payload:
            for item in group.get("validators") or []:
                validators.append(Validator.from_dict(item))
        return validators

    def token_balance(self, network: str, address: str, token_address: Optional[str] = None) -> list[dict[str, Any]]:
        entry: dict[str, Any] = {"network": network, "address": address}
        if token_address:
            entry["tokenAddress"] = token_address
        return self.post("/v1/tokens/balances", {"addresses": [entry]}) or []

    def yield_balances(
        self,
        integration_id: str,
        address: str,
        additional_addresses: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        addresses: dict[str, Any] = {"address": address}
        if additional_addresses:
            addresses["additionalAddresses"] = additional_addresses
        return self.post(f"/v1/yields/{integration_id}/balances", {"addresses": addresses}) or []

    # ============ Actions ============

    def create_action(
        self,
        kind: str,
        integration_id: str,
        address: str,
        args: dict[str, Any],
        additional_addresses: Optional[dict[str, Any]] = None,
    ) -> Action:
        """Create an ``enter`` or ``exit`` action session."""
        if kind not in ("enter", "exit"):
            raise ValueError(f"kind must be 'enter' or 'exit', got {kind!r}")
        payload = self.post(
            f"/v1/actions/{kind}",
            {
                "integrationId": integration_id,
                "addresses": {"address": address, "additionalAddresses": additional_addresses or {}},
                "args": args,
            },
        )
        return Action.from_dict(payload)

    def create_pending_action(
        self,
        integration_id: str,
        action_type: str,
        passthrough: str,
        args: Optional[dict[str, Any]] = None,
    ) -> Action:
        body: dict[str, Any] = {
            "integrationId": integration_id,
            "type": action_type,
            "passthrough": passthrough,
        }
        if args:
            body["args"] = args
        return Action.from_dict(self.post("/v1/actions/pending", body))

    # ============ Transaction backend ============

    def gas_options(self, network: str) -> Optional[GasOptions]:
        payload = self.get(f"/v1/transactions/gas/{network}")
        if not isinstance(payload, dict):
            return None
        return GasOptions.from_dict(payload)

    def prepare(self, transaction: Transaction, gas_args: Optional[dict[str, Any]] = None) -> Transaction:
        body: dict[str, Any] = {}
        if gas_args:
            body["gasArgs"] = gas_args
        payload = self.patch(f"/v1/transactions/{transaction.id}", body)
        return transaction.merged(payload or {})

    def submit(self, transaction: Transaction, signed: str) -> dict[str, Any]:
        result = self.post(
            f"/v1/transactions/{transaction.id}/submit",
            {"signedTransaction": signed},
        )
        return result or {}

    def poll_status(self, transaction: Transaction) -> dict[str, Any]:
        return self.get(f"/v1/transactions/{transaction.id}/status") or {}
