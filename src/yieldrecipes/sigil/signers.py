"""
Signing adapter: one signer per declared signing format.

Transaction steps carry a ``signingFormat`` tag (or none, in which case
the network decides). ``SigningAdapter`` looks the tag up in a registry
and hands the payload to the matching signer, so adding a format means
registering one class rather than growing an if/else chain.

Every signer returns the string the submit endpoint expects:
- EVM transactions: 0x-prefixed raw signed transaction
- EIP-712 typed data: 0x-prefixed 65-byte signature
- Solana transactions: hex of the signed serialized transaction
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import string
from enum import Enum
from typing import Any, Optional, Protocol

from eth_utils import to_checksum_address
from solders.transaction import VersionedTransaction

from ..errors import SigningError
from ..pneuma.models import Transaction
from .wallets import WalletSet, network_family

logger = logging.getLogger(__name__)


class SigningFormat(str, Enum):
    EVM_TRANSACTION = "EVM_TRANSACTION"
    EIP712_TYPED_DATA = "EIP712_TYPED_DATA"
    SOLANA_TRANSACTION = "SOLANA_TRANSACTION"
    COSMOS_TRANSACTION = "COSMOS_TRANSACTION"


# ============ EVM payload normalisation ============

EVM_INT_FIELDS = (
    "value", "nonce", "gas", "gasPrice", "maxFeePerGas",
    "maxPriorityFeePerGas", "chainId", "type",
)
EVM_FIELDS = frozenset(EVM_INT_FIELDS) | {"to", "data", "accessList"}


def _to_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise SigningError(f"Transaction field {name!r} must be numeric")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith("0x"):
                return int(text, 16)
            return int(text)
        except ValueError:
            pass
    raise SigningError(f"Transaction field {name!r} is not an integer: {value!r}")


def normalize_evm_transaction(
    payload: Any,
    expected_sender: Optional[str] = None,
    nonce_offset: int = 0,
) -> dict[str, Any]:
    """
    Turn a server-built EVM transaction into an eth-account signable dict.

    Args:
        payload: Transaction as a dict or JSON string
        expected_sender: When given, a ``from`` field must match it
        nonce_offset: Added to ``nonce`` when the payload carries one

    Returns:
        Dict with only the fields eth-account accepts, integers coerced

    Raises:
        SigningError: Malformed payload or sender mismatch
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise SigningError(f"Unsigned transaction is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SigningError("Unsigned EVM transaction must be a JSON object")

    tx = dict(payload)
    sender = tx.pop("from", None)
    if sender and expected_sender and str(sender).lower() != expected_sender.lower():
        raise SigningError(
            f"Transaction sender {sender} does not match wallet {expected_sender}"
        )
    if "gasLimit" in tx and "gas" not in tx:
        tx["gas"] = tx.pop("gasLimit")

    result: dict[str, Any] = {}
    for key, value in tx.items():
        if key not in EVM_FIELDS or value is None:
            continue
        if key in EVM_INT_FIELDS:
            result[key] = _to_int(key, value)
        elif key == "to":
            result[key] = to_checksum_address(value)
        else:
            result[key] = value

    if "maxFeePerGas" in result:
        result.pop("gasPrice", None)
    if "nonce" in result and nonce_offset:
        result["nonce"] += nonce_offset
    result.setdefault("value", 0)
    result.setdefault("data", "0x")
    return result


# ============ Signers ============


class Signer(Protocol):
    def sign(self, payload: Any, wallets: WalletSet, nonce_offset: int = 0) -> str:
        ...


class EvmTransactionSigner:
    """Signs raw EVM transactions with the mnemonic-derived account."""

    def sign(self, payload: Any, wallets: WalletSet, nonce_offset: int = 0) -> str:
        account = wallets.evm
        tx = normalize_evm_transaction(payload, account.address, nonce_offset)
        if "nonce" in tx:
            logger.debug("signing EVM transaction with nonce %s", tx["nonce"])
        try:
            signed = account.sign_transaction(tx)
        except (TypeError, ValueError) as exc:
            raise SigningError(f"Could not sign EVM transaction: {exc}") from exc
        return "0x" + bytes(signed.raw_transaction).hex()


class Eip712Signer:
    """
    Signs EIP-712 typed data.

    The ``EIP712Domain`` entry is dropped from ``types``: eth-account
    derives the domain type from ``domain`` and rejects a duplicate.
    """

    def sign(self, payload: Any, wallets: WalletSet, nonce_offset: int = 0) -> str:
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as exc:
                raise SigningError(f"Typed data is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise SigningError("Typed data payload must be a JSON object")

        try:
            domain = payload["domain"]
            types = payload["types"]
            message = payload["message"]
        except KeyError as exc:
            raise SigningError(f"Typed data payload is missing {exc.args[0]!r}") from exc

        message_types = {k: v for k, v in types.items() if k != "EIP712Domain"}
        try:
            signed = wallets.evm.sign_typed_data(
                domain_data=domain,
                message_types=message_types,
                message_data=message,
            )
        except (TypeError, ValueError) as exc:
            raise SigningError(f"Could not sign typed data: {exc}") from exc
        return "0x" + bytes(signed.signature).hex()


def _decode_serialized(payload: str) -> bytes:
    text = payload.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    if text and len(text) % 2 == 0 and all(c in string.hexdigits for c in text):
        return bytes.fromhex(text)
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as exc:
        raise SigningError("Serialized transaction is neither hex nor base64") from exc


class SolanaTransactionSigner:
    """Signs a serialized Solana transaction with the derived keypair."""

    def sign(self, payload: Any, wallets: WalletSet, nonce_offset: int = 0) -> str:
        if isinstance(payload, dict):
            payload = payload.get("transaction") or payload.get("serializedTransaction")
        if not isinstance(payload, str):
            raise SigningError("Solana payload must be a serialized transaction string")

        raw = _decode_serialized(payload)
        keypair = wallets.solana
        try:
            unsigned = VersionedTransaction.from_bytes(raw)
            signed = VersionedTransaction(unsigned.message, [keypair])
        except ValueError as exc:
            raise SigningError(f"Could not sign Solana transaction: {exc}") from exc
        return bytes(signed).hex()


class SigningAdapter:
    """Dispatches a transaction step to the signer registered for its format."""

    def __init__(self, signers: Optional[dict[SigningFormat, Signer]] = None) -> None:
        if signers is None:
            signers = {
                SigningFormat.EVM_TRANSACTION: EvmTransactionSigner(),
                SigningFormat.EIP712_TYPED_DATA: Eip712Signer(),
                SigningFormat.SOLANA_TRANSACTION: SolanaTransactionSigner(),
            }
        self._signers = dict(signers)

    def register(self, fmt: SigningFormat, signer: Signer) -> None:
        self._signers[fmt] = signer

    @staticmethod
    def resolve_format(transaction: Transaction) -> SigningFormat:
        """Declared format, else inferred from the step's network."""
        declared = transaction.signing_format
        if declared:
            try:
                return SigningFormat(str(declared).upper())
            except ValueError:
                raise SigningError(f"Unsupported signing format: {declared}")
        family = network_family(transaction.network)
        if family == "solana":
            return SigningFormat.SOLANA_TRANSACTION
        if family == "cosmos":
            return SigningFormat.COSMOS_TRANSACTION
        return SigningFormat.EVM_TRANSACTION

    def sign(self, transaction: Transaction, wallets: WalletSet, nonce_offset: int = 0) -> str:
        """
        Sign one transaction step.

        Raises:
            SigningError: No payload, or no signer for the resolved format
        """
        if transaction.payload in (None, "", {}):
            raise SigningError(f"Transaction {transaction.id} has nothing to sign")
        fmt = self.resolve_format(transaction)
        signer = self._signers.get(fmt)
        if signer is None:
            raise SigningError(f"Signing format {fmt.value} is not supported")
        return signer.sign(transaction.payload, wallets, nonce_offset)
