"""
Commitment encoding tests.

Verifies:
- Layout matches Solidity keccak256(abi.encodePacked(uint256, uint256))
- Correctness and non-ambiguity over the vote domain
- Input validation
"""

from __future__ import annotations

import pytest
from web3 import Web3

from slice_voting.commitment import (
    compute_commitment,
    from_hex32,
    is_empty_commitment,
    to_hex32,
    verify_commitment,
)

SALTS = [0, 1, 0xABCD, 2**128 + 7, 2**256 - 1]


def test_commitment_matches_solidity_packed_encoding():
    for vote in (0, 1, 5):
        for salt in SALTS:
            expected = Web3.solidity_keccak(["uint256", "uint256"], [vote, salt])
            assert compute_commitment(vote, salt) == bytes(expected)


def test_commitment_is_32_bytes():
    c = compute_commitment(1, 12345)
    assert isinstance(c, bytes)
    assert len(c) == 32


def test_verify_accepts_own_commitment():
    for vote in range(4):
        for salt in SALTS:
            assert verify_commitment(vote, salt, compute_commitment(vote, salt))


def test_commitments_distinct_across_votes_for_fixed_salt():
    for salt in SALTS:
        digests = {compute_commitment(v, salt) for v in range(16)}
        assert len(digests) == 16


def test_verify_rejects_wrong_vote_or_salt():
    c = compute_commitment(1, 999)
    assert not verify_commitment(0, 999, c)
    assert not verify_commitment(1, 998, c)
    assert not verify_commitment(1, 999, c[:31])


@pytest.mark.parametrize("vote,salt", [(-1, 1), (0, -1), (2**256, 1), (0, 2**256)])
def test_commitment_rejects_out_of_range(vote, salt):
    with pytest.raises(ValueError, match="uint256"):
        compute_commitment(vote, salt)


def test_commitment_rejects_non_int():
    with pytest.raises(TypeError):
        compute_commitment("1", 5)
    with pytest.raises(TypeError):
        compute_commitment(True, 5)


def test_hex32_helpers():
    c = compute_commitment(0, 1)
    assert from_hex32(to_hex32(c)) == c
    assert to_hex32(b"\x00" * 32) == "0x" + "00" * 32
    with pytest.raises(ValueError):
        to_hex32(b"\x00" * 31)
    with pytest.raises(ValueError):
        from_hex32("00" * 32)
    with pytest.raises(ValueError):
        from_hex32("0x" + "00" * 16)


def test_empty_commitment_detection():
    assert is_empty_commitment(b"\x00" * 32)
    assert not is_empty_commitment(compute_commitment(0, 0))
