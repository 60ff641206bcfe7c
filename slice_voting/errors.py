"""
Error taxonomy for the voting engine.

Every error surfaced by the orchestrator is a SliceVotingError. The
``retryable`` flag tells callers whether repeating the same operation
can succeed without any change on their side.
"""

from __future__ import annotations

from typing import Optional


class SliceVotingError(Exception):
    """Base class for all voting engine errors."""

    retryable: bool = False


class SigningDeclined(SliceVotingError):
    """The user or wallet refused to sign the salt message."""


class WalletNotConnected(SliceVotingError):
    """No voter address is available from the signing capability."""


class LedgerError(SliceVotingError):
    """Base class for ledger failures."""


class LedgerTransient(LedgerError):
    """Network/RPC failure or timeout. State unchanged, safe to retry."""

    retryable = True


class LedgerRejected(LedgerError):
    """The ledger refused the transaction (revert, duplicate commit, wrong phase)."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "rejected by ledger"
        super().__init__(self.reason)


class RecoveryFailed(SliceVotingError):
    """No vote in the configured domain matches the published commitment."""


class CacheUnavailable(SliceVotingError):
    """Local vote cache could not be read or written."""

    retryable = True


class InvalidTransition(SliceVotingError):
    """Operation not allowed from the current voting state."""
