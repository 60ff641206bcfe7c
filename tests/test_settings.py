"""
Settings loading tests (fail-closed defaults).
"""

from __future__ import annotations

import pytest

from slice_voting.eth.settings import CELO_MAINNET_CHAIN_ID, CELO_SEPOLIA_CHAIN_ID, Settings

ENV_VARS = [
    "SLICE_RPC_URL",
    "SLICE_CONTRACT_ADDR",
    "SLICE_APP_ENV",
    "SLICE_CHAIN_ID",
    "STRICT_CHAIN",
    "SLICE_VOTE_DOMAIN_SIZE",
    "SLICE_LEDGER_TIMEOUT_S",
    "SLICE_CONFIRM_TIMEOUT_S",
    "SLICE_CACHE_DIR",
    "SLICE_CACHE_KEY",
]


@pytest.fixture
def env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SLICE_RPC_URL", "https://rpc.test.example")
    monkeypatch.setenv("SLICE_CONTRACT_ADDR", "0x" + "11" * 20)
    return monkeypatch


def test_defaults_are_strict(env):
    s = Settings.load()
    assert s.APP_ENV == "development"
    assert s.CHAIN_ID == CELO_SEPOLIA_CHAIN_ID
    assert s.STRICT_CHAIN is True
    assert s.VOTE_DOMAIN_SIZE == 2
    assert s.CACHE_DIR == ""


def test_missing_required_var(env):
    env.delenv("SLICE_RPC_URL")
    with pytest.raises(RuntimeError, match="SLICE_RPC_URL"):
        Settings.load()


def test_production_selects_mainnet(env):
    env.setenv("SLICE_APP_ENV", "production")
    assert Settings.load().CHAIN_ID == CELO_MAINNET_CHAIN_ID


def test_explicit_chain_id_and_domain(env):
    env.setenv("SLICE_CHAIN_ID", "31337")
    env.setenv("SLICE_VOTE_DOMAIN_SIZE", "3")
    env.setenv("STRICT_CHAIN", "off")
    env.setenv("SLICE_LEDGER_TIMEOUT_S", "2.5")
    s = Settings.load()
    assert s.CHAIN_ID == 31337
    assert s.VOTE_DOMAIN_SIZE == 3
    assert s.STRICT_CHAIN is False
    assert s.LEDGER_TIMEOUT_S == 2.5


def test_unknown_app_env(env):
    env.setenv("SLICE_APP_ENV", "moon")
    with pytest.raises(RuntimeError, match="SLICE_APP_ENV"):
        Settings.load()


def test_bad_integer(env):
    env.setenv("SLICE_VOTE_DOMAIN_SIZE", "two")
    with pytest.raises(RuntimeError, match="integer"):
        Settings.load()


def test_cache_dir_requires_key(env, tmp_path):
    env.setenv("SLICE_CACHE_DIR", str(tmp_path))
    with pytest.raises(RuntimeError, match="SLICE_CACHE_KEY"):
        Settings.load()
    env.setenv("SLICE_CACHE_KEY", "ab" * 32)
    assert Settings.load().CACHE_DIR == str(tmp_path)
