"""
Local vote cache.

Purely an optimization: a missing, stale or unreadable entry only sends the
reveal down the recovery path. Records are sealed at rest with
ChaCha20-Poly1305 when a file backend is used, since the salt stays secret
until reveal.
"""

from __future__ import annotations

import binascii
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from slice_voting.errors import CacheUnavailable
from slice_voting.models import StoredVoteRecord, VoteKey

logger = logging.getLogger(__name__)

NONCE_LEN = 12


class CacheBackend(Protocol):
    """Opaque key/value backend. Values are serialized records."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryBackend:
    """Process-local backend (lost on exit)."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


def new_cache_key() -> bytes:
    return os.urandom(32)


def cache_key_from_hex(s: str) -> bytes:
    k = binascii.unhexlify(s.strip().removeprefix("0x"))
    if len(k) != 32:
        raise ValueError("cache key must be 32 bytes")
    return k


class SealedFileBackend:
    """
    One sealed file per cache key.

    File layout: nonce(12) || ChaCha20-Poly1305(record_json), with the cache
    key as AAD so a file renamed to another key fails to open.
    """

    def __init__(self, dirpath: str, key: bytes):
        self.dirpath = Path(dirpath)
        self.dirpath.mkdir(parents=True, exist_ok=True)
        self._aead = ChaCha20Poly1305(key)

    def _path(self, key: str) -> Path:
        return self.dirpath / f"{key}.sealed"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        blob = path.read_bytes()
        nonce, ct = blob[:NONCE_LEN], blob[NONCE_LEN:]
        return self._aead.decrypt(nonce, ct, key.encode("utf-8")).decode("utf-8")

    def set(self, key: str, value: str) -> None:
        nonce = os.urandom(NONCE_LEN)
        ct = self._aead.encrypt(nonce, value.encode("utf-8"), key.encode("utf-8"))
        tmp = self._path(key).with_suffix(".tmp")
        tmp.write_bytes(nonce + ct)
        os.replace(tmp, self._path(key))


class VoteStore:
    """
    Best-effort cache of (vote, salt) per (contract, dispute, voter).

    Last write wins. Overwriting a different record is logged as a warning
    because it almost always means the same juror voted twice.
    """

    def __init__(self, backend: Optional[CacheBackend] = None):
        self.backend = backend if backend is not None else MemoryBackend()

    def load(self, key: VoteKey) -> Optional[StoredVoteRecord]:
        """
        Raises:
            CacheUnavailable: Backend failure or unreadable record
        """
        try:
            raw = self.backend.get(key.storage_key())
            if raw is None:
                return None
            record = StoredVoteRecord.model_validate_json(raw)
            record_key = record.key()
        except (OSError, InvalidTag, ValueError) as e:
            # ValueError covers truncated blobs, bad JSON and malformed fields
            raise CacheUnavailable(f"cannot read cached vote: {e}") from e

        if record_key != key:
            raise CacheUnavailable("cached record does not belong to this key")
        return record

    def save(self, key: VoteKey, vote: int, salt: int) -> Optional[StoredVoteRecord]:
        """
        Store a vote, returning the record it replaced (if any).

        Raises:
            CacheUnavailable: Backend failure
        """
        record = StoredVoteRecord(
            contract_address=key.contract_address,
            dispute_id=key.dispute_id,
            voter_address=key.voter_address,
            vote=vote,
            salt=salt,
        )
        try:
            previous = self.load(key)
        except CacheUnavailable as e:
            logger.warning(f"Overwriting unreadable cache entry for dispute {key.dispute_id}: {e}")
            previous = None

        if previous is not None and not previous.same_vote(record):
            logger.warning(
                f"Overwriting cached vote for dispute {key.dispute_id} "
                f"voter {key.voter_address}: {previous.vote} -> {vote}"
            )

        try:
            self.backend.set(key.storage_key(), record.model_dump_json())
        except OSError as e:
            raise CacheUnavailable(f"cannot write cached vote: {e}") from e
        return previous
