"""
Vote commitment computation.

Canonical layout (must match the contract's check in revealVote):

    commitment = Keccak256( uint256_be(vote) || uint256_be(salt) )

i.e. Solidity ``keccak256(abi.encodePacked(uint256(vote), uint256(salt)))``.
Both fields are fixed-width, so no (vote, salt) pair shares an encoding.
"""

from __future__ import annotations

import hmac
from typing import Final

from eth_utils import keccak

WORD: Final[int] = 32


def _u256(x: int, name: str) -> bytes:
    if isinstance(x, bool) or not isinstance(x, int):
        raise TypeError(f"{name} must be int")
    if not (0 <= x < 2 ** (8 * WORD)):
        raise ValueError(f"{name} out of uint256 range")
    return x.to_bytes(WORD, "big")


def compute_commitment(vote: int, salt: int) -> bytes:
    """
    Compute the 32-byte commitment for a vote.

    Args:
        vote: Vote value
        salt: 256-bit salt

    Returns:
        32-byte Keccak256 digest
    """
    return keccak(_u256(vote, "vote") + _u256(salt, "salt"))


def verify_commitment(vote: int, salt: int, commitment: bytes) -> bool:
    """Recompute the commitment and compare with a published one."""
    if len(commitment) != WORD:
        return False
    return hmac.compare_digest(compute_commitment(vote, salt), bytes(commitment))


def to_hex32(b: bytes) -> str:
    """Convert 32-byte value to 0x-prefixed hex string."""
    if len(b) != WORD:
        raise ValueError("expected 32-byte value")
    return "0x" + bytes(b).hex()


def from_hex32(h: str) -> bytes:
    """
    Convert 0x-prefixed 32-byte hex string to bytes.

    Raises:
        ValueError: If invalid format or length
    """
    if not h.startswith("0x"):
        raise ValueError("commitment must be 0x-prefixed")
    b = bytes.fromhex(h[2:])
    if len(b) != WORD:
        raise ValueError("commitment must be 32 bytes")
    return b


def is_empty_commitment(commitment: bytes) -> bool:
    """True for the zero word the contract returns when nothing was committed."""
    return not any(commitment)
