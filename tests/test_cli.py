"""
CLI tests (no network).
"""

from __future__ import annotations

import pytest

from slice_voting import cli
from slice_voting.cli import cache_is_ephemeral, main
from slice_voting.models import ConfirmationReceipt
from slice_voting.store import MemoryBackend, SealedFileBackend, VoteStore, new_cache_key

ENV_VARS = ["SLICE_RPC_URL", "SLICE_CONTRACT_ADDR", "SLICE_PRIVATE_KEY"]


class FakeChain:
    """Stands in for SliceLedger; records whether the session was closed."""

    def __init__(self, reachable: bool = True):
        self.contract_address = "0x" + "5c" * 20
        self.reachable = reachable
        self.closed = False

    async def ping(self) -> bool:
        return self.reachable

    async def verify_chain_id(self, expected: int) -> None:
        pass

    async def commit_vote(self, dispute_id: int, commitment: bytes) -> str:
        return "0x" + "01" * 32

    async def await_confirmation(self, tx_handle: str) -> ConfirmationReceipt:
        return ConfirmationReceipt(tx_hash=tx_handle, block_number=1, succeeded=True)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def chain(monkeypatch):
    fake = FakeChain()
    monkeypatch.setenv("SLICE_RPC_URL", "http://127.0.0.1:9")
    monkeypatch.setenv("SLICE_CONTRACT_ADDR", fake.contract_address)
    monkeypatch.setenv("SLICE_PRIVATE_KEY", "0x" + "11" * 32)
    monkeypatch.delenv("SLICE_CACHE_DIR", raising=False)
    monkeypatch.setattr(cli.SliceLedger, "from_settings", staticmethod(lambda settings, account: fake))
    return fake


def test_message_command(capsys):
    assert main(["message", "042"]) == 0
    assert capsys.readouterr().out.strip() == "SLICE_VOTE_SALT:42"


def test_message_rejects_bad_dispute(capsys):
    assert main(["message", "abc"]) == 2
    assert "invalid dispute id" in capsys.readouterr().err


def test_commit_without_config_fails_closed(monkeypatch, capsys):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    assert main(["--yes", "commit", "1", "0"]) == 1
    assert "SLICE_RPC_URL" in capsys.readouterr().err


def test_cache_is_ephemeral(tmp_path):
    assert cache_is_ephemeral(None)
    assert cache_is_ephemeral(VoteStore(MemoryBackend()))
    assert not cache_is_ephemeral(VoteStore(SealedFileBackend(str(tmp_path), new_cache_key())))


def test_commit_warns_when_cache_is_memory_only(chain, monkeypatch, capsys):
    monkeypatch.setenv("STRICT_CHAIN", "false")
    assert main(["--yes", "commit", "42", "1"]) == 0
    out = capsys.readouterr().out
    assert "Vote committed for dispute 42" in out
    assert "cached in memory only" in out
    assert chain.closed


def test_commit_with_sealed_cache_does_not_warn(chain, monkeypatch, capsys, tmp_path):
    monkeypatch.setenv("STRICT_CHAIN", "false")
    monkeypatch.setenv("SLICE_CACHE_DIR", str(tmp_path))
    monkeypatch.setenv("SLICE_CACHE_KEY", new_cache_key().hex())
    assert main(["--yes", "commit", "42", "1"]) == 0
    assert "cached in memory only" not in capsys.readouterr().out


def test_session_closed_when_startup_check_fails(chain, monkeypatch):
    chain.reachable = False
    monkeypatch.setenv("STRICT_CHAIN", "true")
    with pytest.raises(SystemExit, match="Chain unreachable"):
        main(["--yes", "recover", "42"])
    assert chain.closed
