"""
Per-network-family signer instances derived from one mnemonic.

A multi-step action may span an EVM chain and Solana; each family needs
its own key, but all of them come from the same seed phrase. Keys are
derived lazily on first use and then reused for every step.
"""

from __future__ import annotations

from typing import Optional

from eth_account.signers.local import LocalAccount
from solders.keypair import Keypair

from . import eth, solana


SOLANA_NETWORKS = frozenset({"solana", "solana-devnet", "solana-testnet"})
COSMOS_PREFIXES = (
    "cosmos", "osmosis", "celestia", "injective", "dydx", "akash",
    "juno", "kava", "stargaze", "sei", "axelar", "agoric", "persistence",
)


def network_family(network: Optional[str]) -> str:
    """Return ``"solana"``, ``"cosmos"`` or ``"evm"`` for a network id."""
    name = (network or "").lower()
    if name in SOLANA_NETWORKS or name.startswith("solana"):
        return "solana"
    if name.startswith(COSMOS_PREFIXES):
        return "cosmos"
    return "evm"


class WalletSet:
    """Lazily derived signer instances sharing a mnemonic and index."""

    def __init__(self, mnemonic: str, index: int = 0) -> None:
        self._mnemonic = mnemonic
        self.index = index
        self._evm: Optional[LocalAccount] = None
        self._solana: Optional[Keypair] = None

    @property
    def evm(self) -> LocalAccount:
        if self._evm is None:
            self._evm = eth.derive_account(self._mnemonic, self.index)
        return self._evm

    @property
    def solana(self) -> Keypair:
        if self._solana is None:
            self._solana = solana.derive_keypair(self._mnemonic, self.index)
        return self._solana

    @property
    def address(self) -> str:
        """Primary (EVM) address."""
        return self.evm.address

    def address_for(self, network: Optional[str]) -> str:
        if network_family(network) == "solana":
            return str(self.solana.pubkey())
        return self.evm.address

    def __repr__(self) -> str:
        return f"WalletSet(index={self.index})"
