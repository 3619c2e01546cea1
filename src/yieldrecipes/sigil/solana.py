"""
Solana keypair derivation.

Uses the SLIP-10 ed25519 path ``m/44'/501'/{index}'/0'`` (the layout
Phantom and Trust Wallet use), computed with bip-utils and wrapped in a
solders Keypair for signing.
"""

from __future__ import annotations

from bip_utils import (
    Bip39MnemonicValidator,
    Bip39SeedGenerator,
    Bip44,
    Bip44Changes,
    Bip44Coins,
)
from solders.keypair import Keypair

from ..errors import ConfigError


def derive_keypair(mnemonic: str, index: int = 0) -> Keypair:
    """
    Derive the Solana keypair for a mnemonic/index pair.

    Raises:
        ConfigError: If bip-utils rejects the mnemonic
    """
    phrase = " ".join(mnemonic.split())
    if not Bip39MnemonicValidator().IsValid(phrase):
        raise ConfigError("Invalid MNEMONIC: not a valid BIP-39 phrase")

    seed = Bip39SeedGenerator(phrase).Generate()

    bip44 = Bip44.FromSeed(seed, Bip44Coins.SOLANA)
    account = bip44.Purpose().Coin().Account(index).Change(Bip44Changes.CHAIN_EXT)
    private_key = account.PrivateKey().Raw().ToBytes()
    return Keypair.from_seed(private_key[:32])
