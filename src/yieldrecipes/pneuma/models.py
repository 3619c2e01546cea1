"""
Wire models shared by the three API flavours.

The Yields, StakeKit and Perps APIs all describe an action as an ordered
list of transaction steps, but disagree on field names (``hash`` vs
``transactionHash``, ``unsignedTransaction`` vs ``signablePayload``,
``explorerUrl`` vs ``link``). These dataclasses absorb the differences
once so the pipeline never sniffs raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class TransactionStatus(str, Enum):
    CREATED = "CREATED"
    WAITING_FOR_SIGNATURE = "WAITING_FOR_SIGNATURE"
    SIGNED = "SIGNED"
    BROADCASTED = "BROADCASTED"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    NOT_FOUND = "NOT_FOUND"


SETTLED_STATUSES = frozenset({TransactionStatus.CONFIRMED.value, TransactionStatus.BROADCASTED.value})


def _first(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True)
class Transaction:
    """
    One step of an action.

    Attributes:
        id: Server transaction id
        network: Network the step executes on
        status: Raw status string (see TransactionStatus)
        type: Step label, e.g. ``APPROVAL`` or ``STAKE``
        step_index: Zero-based position within the action
        signing_format: Declared signing format, if the server sent one
        payload: Signable payload as sent (JSON string, hex string or dict)
        hash: On-chain hash once known
        explorer_url: Block explorer link once known
        raw: The response dict this value was built from
    """

    id: str
    network: str = ""
    status: str = TransactionStatus.CREATED.value
    type: str = ""
    step_index: int = 0
    signing_format: Optional[str] = None
    payload: Any = None
    hash: Optional[str] = None
    explorer_url: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, payload: dict[str, Any], step_index: Optional[int] = None) -> "Transaction":
        index = payload.get("stepIndex")
        if index is None:
            index = step_index if step_index is not None else 0
        return cls(
            id=str(payload.get("id", "")),
            network=str(payload.get("network") or ""),
            status=str(payload.get("status") or TransactionStatus.CREATED.value).upper(),
            type=str(payload.get("type") or ""),
            step_index=int(index),
            signing_format=payload.get("signingFormat"),
            payload=_first(payload, "unsignedTransaction", "signablePayload"),
            hash=_first(payload, "hash", "transactionHash"),
            explorer_url=_first(payload, "explorerUrl", "link", "url"),
            raw=dict(payload),
        )

    def merged(self, payload: dict[str, Any]) -> "Transaction":
        """
        Return a copy updated with whatever fields a server response carries.

        Fields absent from ``payload`` keep their current value, so partial
        responses (submit results, status polls) never erase known data.
        """
        updates: dict[str, Any] = {}
        if payload.get("network"):
            updates["network"] = str(payload["network"])
        if payload.get("status"):
            updates["status"] = str(payload["status"]).upper()
        if payload.get("type"):
            updates["type"] = str(payload["type"])
        if payload.get("signingFormat"):
            updates["signing_format"] = payload["signingFormat"]
        signable = _first(payload, "unsignedTransaction", "signablePayload")
        if signable is not None:
            updates["payload"] = signable
        tx_hash = _first(payload, "hash", "transactionHash")
        if tx_hash:
            updates["hash"] = tx_hash
        link = _first(payload, "explorerUrl", "link", "url")
        if link:
            updates["explorer_url"] = link
        return replace(self, raw={**self.raw, **payload}, **updates)

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_STATUSES

    @property
    def is_skipped(self) -> bool:
        return self.status == TransactionStatus.SKIPPED.value


@dataclass(frozen=True)
class Action:
    id: str
    type: str
    status: str = ""
    integration_id: str = ""
    transactions: tuple[Transaction, ...] = ()
    signed_metadata: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Action":
        txs = tuple(
            Transaction.from_dict(tx, step_index=i)
            for i, tx in enumerate(payload.get("transactions") or [])
        )
        return cls(
            id=str(payload.get("id", "")),
            type=str(_first(payload, "type", "action") or ""),
            status=str(payload.get("status") or ""),
            integration_id=str(_first(payload, "integrationId", "yieldId", "providerId") or ""),
            transactions=txs,
            signed_metadata=payload.get("signedMetadata"),
            raw=dict(payload),
        )


@dataclass(frozen=True)
class GasMode:
    name: str
    gas_args: dict[str, Any] = field(default_factory=dict)

    @property
    def is_custom(self) -> bool:
        return self.name.lower() == "custom"


CUSTOM_GAS_MODE = GasMode(name="custom")


@dataclass(frozen=True)
class GasOptions:
    """Gas pricing tiers offered for a network."""

    customisable: bool
    denom: str = ""
    modes: tuple[GasMode, ...] = ()

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "GasOptions":
        modes_block = payload.get("modes") or {}
        values = modes_block.get("values") or []
        return cls(
            customisable=bool(payload.get("customisable", bool(values))),
            denom=str(modes_block.get("denom") or ""),
            modes=tuple(
                GasMode(name=str(v.get("name", "")), gas_args=dict(v.get("gasArgs") or {}))
                for v in values
            ),
        )


@dataclass(frozen=True)
class Validator:
    address: str
    name: str = ""
    status: str = ""
    reward_rate: Optional[float] = None
    subnet_id: Optional[int] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Validator":
        rate = payload.get("rewardRate")
        if isinstance(rate, dict):
            rate = rate.get("total")
        if rate is None:
            rate = payload.get("apr")
        return cls(
            address=str(payload.get("address", "")),
            name=str(payload.get("name") or ""),
            status=str(payload.get("status") or ""),
            reward_rate=float(rate) if rate is not None else None,
            subnet_id=payload.get("subnetId"),
            raw=dict(payload),
        )

    @property
    def display_name(self) -> str:
        return self.name or self.address
