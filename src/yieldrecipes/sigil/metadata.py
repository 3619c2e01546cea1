"""
Signed action metadata verification.

Perps actions may carry ``signedMetadata``: a hex string of TLV records
(1-byte tag, 1-byte length, value) followed by a signature record (tag
0x15) holding a DER ECDSA secp256k1 signature over every byte before it.
Hardware wallets use this blob to display what they are signing; the CLI
verifies it so a tampered response is flagged before signing.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec


SIGNED_METADATA_PUBLIC_KEY = (
    "-----BEGIN PUBLIC KEY-----\n"
    "MFYwEAYHKoZIzj0CAQYFK4EEAAoDQgAEh6fd7pBTiuxafsrxZh948/44hQoLtVqDac6QRrgAYgTA5gO9vLrCLoAo1MAgG4NMjZtQ/ESxj0VA4bk7UTVAfQ==\n"
    "-----END PUBLIC KEY-----\n"
)

TAG_STRUCTURE_TYPE = 0x01
TAG_VERSION = 0x02
TAG_ASSET_TICKER = 0x24
TAG_ACTION_TYPE = 0xD0
TAG_ASSET_ID = 0xD1
TAG_SIGNATURE = 0x15

EXPECTED_STRUCTURE_TYPE = 0x2B
EXPECTED_VERSION = 0x01
MAX_ACTION_TYPE = 0x03


def iter_tlv(data: bytes) -> Iterator[tuple[int, int, bytes]]:
    """Yield ``(offset, tag, value)`` for each record; stops on truncation."""
    i = 0
    while i + 2 <= len(data):
        tag, length = data[i], data[i + 1]
        end = i + 2 + length
        if end > len(data):
            return
        yield i, tag, data[i + 2:end]
        i = end


def _check_fields(metadata: bytes, summary: Optional[dict[str, Any]]) -> bool:
    for _, tag, value in iter_tlv(metadata):
        if not value:
            return False
        if tag == TAG_STRUCTURE_TYPE and value[0] != EXPECTED_STRUCTURE_TYPE:
            return False
        if tag == TAG_VERSION and value[0] != EXPECTED_VERSION:
            return False
        if tag == TAG_ACTION_TYPE and value[0] > MAX_ACTION_TYPE:
            return False
        if summary is None:
            continue
        if tag == TAG_ASSET_ID and "assetId" in summary:
            if len(value) < 4 or int.from_bytes(value[:4], "big") != summary["assetId"]:
                return False
        if tag == TAG_ASSET_TICKER and "asset" in summary:
            if value.decode("utf-8", errors="replace") != summary["asset"]:
                return False
    return True


def verify_signed_metadata(
    hex_blob: str,
    summary: Optional[dict[str, Any]] = None,
    public_key_pem: str = SIGNED_METADATA_PUBLIC_KEY,
) -> bool:
    """
    Verify a signed metadata blob.

    Args:
        hex_blob: Hex string as returned by the API (0x prefix optional)
        summary: Optional ``{"assetId": int, "asset": str}`` to cross-check
        public_key_pem: PEM public key of the metadata signer

    Returns:
        True only if the signature is valid and every checked field matches
    """
    try:
        text = hex_blob[2:] if hex_blob.lower().startswith("0x") else hex_blob
        data = bytes.fromhex(text)
    except (AttributeError, ValueError):
        return False

    signature_at = None
    signature = b""
    for offset, tag, value in iter_tlv(data):
        if tag == TAG_SIGNATURE:
            signature_at, signature = offset, value
            break
    if signature_at is None or not signature:
        return False

    metadata = data[:signature_at]
    try:
        public_key = serialization.load_pem_public_key(public_key_pem.encode("ascii"))
    except ValueError:
        return False
    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        return False
    try:
        public_key.verify(signature, metadata, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature:
        return False

    return _check_fields(metadata, summary)
