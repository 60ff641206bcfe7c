"""
Vote recovery by exhaustive search over the vote domain.

Given the re-derived salt and the commitment published on-chain, try every
vote in ascending order until one reproduces the commitment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from slice_voting import DEFAULT_VOTE_DOMAIN_SIZE
from slice_voting.commitment import verify_commitment
from slice_voting.errors import RecoveryFailed
from slice_voting.salt import salt_fingerprint

logger = logging.getLogger(__name__)

MAX_DOMAIN_SIZE = 256


@dataclass(frozen=True)
class VoteDomain:
    """Votes accepted by the ledger: 0, 1, ..., size - 1."""

    size: int = DEFAULT_VOTE_DOMAIN_SIZE

    def __post_init__(self) -> None:
        if isinstance(self.size, bool) or not isinstance(self.size, int):
            raise TypeError("domain size must be int")
        if not (1 <= self.size <= MAX_DOMAIN_SIZE):
            raise ValueError(f"domain size must be in [1, {MAX_DOMAIN_SIZE}]")

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.size))

    def __len__(self) -> int:
        return self.size

    def contains(self, vote: int) -> bool:
        return isinstance(vote, int) and not isinstance(vote, bool) and 0 <= vote < self.size


def recover_vote(salt: int, published_commitment: bytes, domain: VoteDomain) -> int:
    """
    Find the vote whose commitment under ``salt`` equals the published one.

    Raises:
        RecoveryFailed: No vote in the domain matches. Either the salt is wrong
            (different account, changed message format) or the domain is
            smaller than what the contract accepts.
    """
    for candidate in domain:
        if verify_commitment(candidate, salt, published_commitment):
            logger.debug(f"Recovered vote {candidate} (salt {salt_fingerprint(salt)}...)")
            return candidate

    logger.error(
        f"No vote in domain of size {len(domain)} matches commitment "
        f"0x{bytes(published_commitment).hex()[:16]}..."
    )
    raise RecoveryFailed(
        f"no vote in [0, {len(domain)}) matches the published commitment; "
        "check the signing account and the configured vote domain"
    )
