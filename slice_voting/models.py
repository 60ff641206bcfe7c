from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from slice_voting.salt import canonical_dispute_id


def now_utc() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@dataclass(frozen=True)
class VoteKey:
    """Cache key: one vote per (contract, dispute, voter)."""

    contract_address: str
    dispute_id: str
    voter_address: str

    @staticmethod
    def of(contract_address: str, dispute_id, voter_address: str) -> VoteKey:
        # Checksummed and lowercase spellings must hit the same entry
        return VoteKey(
            contract_address=contract_address.lower(),
            dispute_id=canonical_dispute_id(dispute_id),
            voter_address=voter_address.lower(),
        )

    def storage_key(self) -> str:
        return f"slice_vote_{self.contract_address}_{self.dispute_id}_{self.voter_address}"


class StoredVoteRecord(BaseModel):
    kind: str = "StoredVoteRecord"
    contract_address: str
    dispute_id: str
    voter_address: str
    vote: int = Field(ge=0)
    salt: int  # stored as a decimal string
    saved_utc: str = Field(default_factory=now_utc)

    @field_validator("salt", mode="before")
    @classmethod
    def _salt_from_str(cls, v):
        n = int(v) if isinstance(v, str) else v
        if isinstance(n, int) and not (0 <= n < 2**256):
            raise ValueError("salt out of uint256 range")
        return n

    @field_serializer("salt")
    def _salt_to_str(self, v: int) -> str:
        return str(v)

    def key(self) -> VoteKey:
        return VoteKey.of(self.contract_address, self.dispute_id, self.voter_address)

    def same_vote(self, other: StoredVoteRecord) -> bool:
        return self.vote == other.vote and self.salt == other.salt


class VotePhase(str, Enum):
    UNCOMMITTED = "uncommitted"
    COMMITTED = "committed"
    REVEAL_PENDING = "reveal_pending"
    REVEALED = "revealed"
    REVEAL_BLOCKED = "reveal_blocked"


class RevealSource(str, Enum):
    CACHE = "cache"
    RECOVERED = "recovered"


@dataclass(frozen=True)
class ConfirmationReceipt:
    """Subset of a transaction receipt the orchestrator relies on."""

    tx_hash: str
    block_number: int
    succeeded: bool


@dataclass(frozen=True)
class CommitResult:
    dispute_id: str
    vote: int
    commitment: str
    tx_hash: str
    cached: bool
    replaced_cache_entry: Optional[StoredVoteRecord] = None


@dataclass(frozen=True)
class RevealResult:
    dispute_id: str
    vote: int
    salt: int
    source: RevealSource
    tx_hash: str
