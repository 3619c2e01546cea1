"""
Environment-driven configuration.

All recipes read their settings from the process environment, after
python-dotenv has loaded ``./.env`` (existing variables win). Nothing is
cached between calls so tests can patch ``os.environ`` freely.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError


# ============ Defaults ============

DEFAULT_YIELDS_API_URL = "https://api.yield.xyz"
DEFAULT_PERPS_API_URL = "https://perps.yield.xyz"
DEFAULT_STAKEKIT_API_URL = "https://api.stakek.it"
DEFAULT_CROSS_CHAIN_DELAY = 5.0


def load_env(env_path: Optional[Path] = None) -> None:
    """Load a .env file into the environment without overriding set values."""
    if env_path is not None:
        if env_path.exists():
            load_dotenv(env_path, override=False)
        return
    load_dotenv(override=False)


@dataclass(frozen=True)
class ApiSettings:
    """Base URL and key for one remote API."""

    base_url: str
    api_key: Optional[str]
    key_var: str

    def require_key(self) -> str:
        if not self.api_key:
            raise ConfigError(f"{self.key_var} environment variable is required")
        return self.api_key


@dataclass(frozen=True)
class Settings:
    """
    Snapshot of the recipe configuration.

    Attributes:
        mnemonic: BIP-39 seed phrase used to derive every signer
        wallet_index: Derivation index (``WALLET_INDEX``, default 0)
        yields: Yields API settings
        perps: Perps API settings
        stakekit: Legacy StakeKit API settings
        cross_chain_delay: Seconds to wait when consecutive steps switch network
    """

    mnemonic: Optional[str]
    wallet_index: int
    yields: ApiSettings
    perps: ApiSettings
    stakekit: ApiSettings
    cross_chain_delay: float = DEFAULT_CROSS_CHAIN_DELAY

    @classmethod
    def from_env(cls) -> "Settings":
        raw_index = os.environ.get("WALLET_INDEX", "0").strip() or "0"
        try:
            wallet_index = int(raw_index)
        except ValueError:
            raise ConfigError(f"WALLET_INDEX must be an integer, got {raw_index!r}")
        if wallet_index < 0:
            raise ConfigError("WALLET_INDEX must not be negative")

        raw_delay = os.environ.get("YIELD_RECIPES_CROSS_CHAIN_DELAY", "")
        try:
            delay = float(raw_delay) if raw_delay else DEFAULT_CROSS_CHAIN_DELAY
        except ValueError:
            raise ConfigError(
                f"YIELD_RECIPES_CROSS_CHAIN_DELAY must be a number, got {raw_delay!r}"
            )

        mnemonic = os.environ.get("MNEMONIC", "").strip() or None

        return cls(
            mnemonic=mnemonic,
            wallet_index=wallet_index,
            yields=_api_settings("YIELDS_API_URL", "YIELDS_API_KEY", DEFAULT_YIELDS_API_URL),
            perps=_api_settings("PERPS_API_URL", "PERPS_API_KEY", DEFAULT_PERPS_API_URL),
            stakekit=_api_settings("API_ENDPOINT", "API_KEY", DEFAULT_STAKEKIT_API_URL),
            cross_chain_delay=delay,
        )

    def require_mnemonic(self) -> str:
        if not self.mnemonic:
            raise ConfigError("MNEMONIC environment variable is required")
        return self.mnemonic


def _api_settings(url_var: str, key_var: str, default_url: str) -> ApiSettings:
    base_url = os.environ.get(url_var, "").strip() or default_url
    api_key = os.environ.get(key_var, "").strip() or None
    return ApiSettings(base_url=base_url, api_key=api_key, key_var=key_var)


def get_settings(env_path: Optional[Path] = None) -> Settings:
    """Load ``.env`` (if any) and return the current settings."""
    load_env(env_path)
    return Settings.from_env()
