"""
Deterministic salt derivation.

    message = "SLICE_VOTE_SALT:" || decimal(disputeId)
    salt    = uint256(Keccak256(signature(message)))

Wallets sign with RFC 6979 nonces, so the same key signing the same
message always yields the same signature and therefore the same salt.
"""

from __future__ import annotations

from typing import Union

from eth_utils import keccak

from slice_voting import SALT_MESSAGE_PREFIX

UINT256_MAX = 2**256 - 1

DisputeId = Union[int, str]


def canonical_dispute_id(dispute_id: DisputeId) -> str:
    """
    Normalize a dispute id to canonical decimal (uint256).

    Raises:
        ValueError: If the id is not a non-negative integer in uint256 range
    """
    if isinstance(dispute_id, bool):
        raise ValueError("dispute id must be an integer")
    if isinstance(dispute_id, int):
        n = dispute_id
    else:
        s = str(dispute_id).strip()
        if not s.isdigit():
            raise ValueError(f"invalid dispute id: {dispute_id!r}")
        n = int(s)
    if not (0 <= n <= UINT256_MAX):
        raise ValueError("dispute id out of uint256 range")
    return str(n)


def get_signing_message(dispute_id: DisputeId) -> str:
    """Exact message the voter signs to obtain the salt for a dispute."""
    return SALT_MESSAGE_PREFIX + canonical_dispute_id(dispute_id)


def derive_salt(signature: bytes) -> int:
    """
    Reduce a wallet signature to a 256-bit salt.

    Args:
        signature: Raw signature bytes (65-byte r||s||v for EIP-191)

    Returns:
        Salt as an unsigned 256-bit integer
    """
    if not signature:
        raise ValueError("empty signature")
    return int.from_bytes(keccak(bytes(signature)), "big")


def salt_fingerprint(salt: int) -> str:
    """Short, log-safe prefix of a salt."""
    return f"{salt:064x}"[:8]
