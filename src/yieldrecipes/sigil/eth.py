"""
EVM key derivation from a BIP-39 mnemonic.

Every recipe derives its EVM signer from ``MNEMONIC`` at
``m/44'/60'/0'/0/{WALLET_INDEX}``. The key lives in memory only.

Dependencies: eth-account (HD wallet support is flagged "unaudited"
upstream and must be enabled explicitly).
"""

from __future__ import annotations

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import ValidationError

from ..errors import ConfigError


EVM_DERIVATION_PATH = "m/44'/60'/0'/0/{index}"

Account.enable_unaudited_hdwallet_features()


def evm_derivation_path(index: int = 0) -> str:
    return EVM_DERIVATION_PATH.format(index=index)


def derive_account(mnemonic: str, index: int = 0) -> LocalAccount:
    """
    Derive an EVM account from a mnemonic.

    Args:
        mnemonic: BIP-39 seed phrase
        index: Address index in the derivation path

    Returns:
        LocalAccount able to sign transactions and typed data

    Raises:
        ConfigError: If the mnemonic is not a valid BIP-39 phrase
    """
    try:
        return Account.from_mnemonic(
            " ".join(mnemonic.split()),
            account_path=evm_derivation_path(index),
        )
    except (ValueError, ValidationError) as exc:
        raise ConfigError(f"Invalid MNEMONIC: {exc}") from exc
