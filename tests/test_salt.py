"""
Salt derivation tests.

Verifies:
- Signing message format is frozen and embeds the dispute id
- Same key + same dispute always gives the same salt
- Different disputes give different salts
"""

from __future__ import annotations

import asyncio

import pytest

from slice_voting import SALT_MESSAGE_PREFIX
from slice_voting.eth.signer import LocalAccountSigner
from slice_voting.salt import canonical_dispute_id, derive_salt, get_signing_message

KEY_A = "0x" + "11" * 32
KEY_B = "0x" + "22" * 32


def _salt_for(key: str, dispute_id) -> int:
    signer = LocalAccountSigner.from_key(key)
    sig = asyncio.run(signer.sign_message(get_signing_message(dispute_id)))
    return derive_salt(sig)


def test_signing_message_format_is_stable():
    """Changing this string breaks recovery for every existing commitment."""
    assert SALT_MESSAGE_PREFIX == "SLICE_VOTE_SALT:"
    assert get_signing_message("42") == "SLICE_VOTE_SALT:42"
    assert get_signing_message(42) == "SLICE_VOTE_SALT:42"


def test_signing_message_canonicalizes_dispute_id():
    assert get_signing_message("042") == get_signing_message(42)
    assert get_signing_message(" 7 ") == "SLICE_VOTE_SALT:7"


@pytest.mark.parametrize("bad", ["", "-1", "4.2", "0x2a", "abc", -1, 2**256, True])
def test_signing_message_rejects_invalid_ids(bad):
    with pytest.raises(ValueError):
        get_signing_message(bad)


def test_canonical_dispute_id_uint256_bounds():
    assert canonical_dispute_id(0) == "0"
    assert canonical_dispute_id(2**256 - 1) == str(2**256 - 1)


def test_salt_deterministic_across_invocations():
    assert _salt_for(KEY_A, "42") == _salt_for(KEY_A, "42")


def test_salt_domain_separated_by_dispute():
    salts = {_salt_for(KEY_A, d) for d in ("1", "2", "3", "42", "43")}
    assert len(salts) == 5


def test_salt_differs_between_accounts():
    assert _salt_for(KEY_A, "42") != _salt_for(KEY_B, "42")


def test_derive_salt_is_256_bit():
    salt = derive_salt(b"\x01" * 65)
    assert 0 <= salt < 2**256
    assert derive_salt(b"\x01" * 65) == salt
    assert derive_salt(b"\x02" + b"\x01" * 64) != salt


def test_derive_salt_rejects_empty_signature():
    with pytest.raises(ValueError, match="empty"):
        derive_salt(b"")
