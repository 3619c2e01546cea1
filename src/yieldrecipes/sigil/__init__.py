"""
Sigil - Keys and signatures.

Derives EVM and Solana signers from one BIP-39 mnemonic, signs
transaction payloads by signing format, and verifies signed action
metadata.

Uses eth-account, bip-utils + solders, and cryptography.
"""
