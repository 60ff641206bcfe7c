"""
Voting client configuration with fail-closed defaults.

Environment variables control behavior:
- SLICE_RPC_URL / SLICE_CONTRACT_ADDR: required
- SLICE_APP_ENV: development | staging | production (selects expected chain)
- STRICT_CHAIN: Fail if RPC unreachable or on the wrong chain (default: true)
- SLICE_VOTE_DOMAIN_SIZE: number of vote options the contract accepts (default: 2)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict

from slice_voting import DEFAULT_VOTE_DOMAIN_SIZE

CELO_SEPOLIA_CHAIN_ID = 11142220
CELO_MAINNET_CHAIN_ID = 42220

CHAIN_BY_ENV: Dict[str, int] = {
    "development": CELO_SEPOLIA_CHAIN_ID,
    "staging": CELO_SEPOLIA_CHAIN_ID,
    "production": CELO_MAINNET_CHAIN_ID,
}


def _req(name: str) -> str:
    """Get required environment variable or raise."""
    v = os.getenv(name)
    if not v:
        raise RuntimeError(f"Missing required env var: {name}")
    return v


def _opt(name: str, default: str) -> str:
    return os.getenv(name, default)


def _opt_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _opt_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return int(v)
    except ValueError:
        raise RuntimeError(f"Env var {name} must be an integer, got {v!r}") from None


def _opt_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return float(v)
    except ValueError:
        raise RuntimeError(f"Env var {name} must be a number, got {v!r}") from None


@dataclass(frozen=True)
class Settings:
    """Client configuration for the Slice voting contract."""

    RPC_URL: str
    CONTRACT_ADDR: str

    APP_ENV: str = "development"
    CHAIN_ID: int = CELO_SEPOLIA_CHAIN_ID

    # Fail-closed behaviors (default: strict)
    STRICT_CHAIN: bool = True

    # Must cover every vote the contract accepts, or recovery fails spuriously
    VOTE_DOMAIN_SIZE: int = DEFAULT_VOTE_DOMAIN_SIZE

    LEDGER_TIMEOUT_S: float = 30.0
    CONFIRM_TIMEOUT_S: float = 120.0

    # Empty CACHE_DIR keeps the vote cache in memory only
    CACHE_DIR: str = ""
    CACHE_KEY: str = ""

    @staticmethod
    def load() -> Settings:
        """Load settings from environment variables."""
        app_env = _opt("SLICE_APP_ENV", "development").strip().lower()
        if app_env not in CHAIN_BY_ENV:
            raise RuntimeError(
                f"SLICE_APP_ENV must be one of {sorted(CHAIN_BY_ENV)}, got {app_env!r}"
            )
        s = Settings(
            RPC_URL=_req("SLICE_RPC_URL"),
            CONTRACT_ADDR=_req("SLICE_CONTRACT_ADDR"),
            APP_ENV=app_env,
            CHAIN_ID=_opt_int("SLICE_CHAIN_ID", CHAIN_BY_ENV[app_env]),
            STRICT_CHAIN=_opt_bool("STRICT_CHAIN", True),
            VOTE_DOMAIN_SIZE=_opt_int("SLICE_VOTE_DOMAIN_SIZE", DEFAULT_VOTE_DOMAIN_SIZE),
            LEDGER_TIMEOUT_S=_opt_float("SLICE_LEDGER_TIMEOUT_S", 30.0),
            CONFIRM_TIMEOUT_S=_opt_float("SLICE_CONFIRM_TIMEOUT_S", 120.0),
            CACHE_DIR=_opt("SLICE_CACHE_DIR", ""),
            CACHE_KEY=_opt("SLICE_CACHE_KEY", ""),
        )
        if s.CACHE_DIR and not s.CACHE_KEY:
            raise RuntimeError("SLICE_CACHE_DIR set but SLICE_CACHE_KEY missing")
        return s
