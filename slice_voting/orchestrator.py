"""
Two-phase commit/reveal orchestration against the ledger.

State per (dispute, voter):

    UNCOMMITTED --commit confirmed--> COMMITTED --reveal--> REVEAL_PENDING --confirmed--> REVEALED
                                           |
                                           +--recovery failed--> REVEAL_BLOCKED (until reset)

A state only advances once the ledger confirmation has been observed.
Declined signatures, transient ledger failures, rejections and task
cancellation all leave the state where it was.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Awaitable, Callable, Dict, Iterator, Optional, Protocol, Set, Tuple, TypeVar

import aiohttp
from web3.exceptions import (
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    Web3Exception,
)

from slice_voting.commitment import (
    compute_commitment,
    is_empty_commitment,
    to_hex32,
    verify_commitment,
)
from slice_voting.errors import (
    CacheUnavailable,
    InvalidTransition,
    LedgerRejected,
    LedgerTransient,
    RecoveryFailed,
    SliceVotingError,
    WalletNotConnected,
)
from slice_voting.models import (
    CommitResult,
    ConfirmationReceipt,
    RevealResult,
    RevealSource,
    StoredVoteRecord,
    VoteKey,
    VotePhase,
)
from slice_voting.recovery import VoteDomain, recover_vote
from slice_voting.salt import DisputeId, canonical_dispute_id, derive_salt, get_signing_message, salt_fingerprint
from slice_voting.store import VoteStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Signer(Protocol):
    """Wallet signing capability. Raises SigningDeclined when the user refuses."""

    @property
    def address(self) -> Optional[str]: ...

    async def sign_message(self, message: str) -> bytes: ...


class Ledger(Protocol):
    """Opaque system of record holding commitments."""

    @property
    def contract_address(self) -> str: ...

    async def commit_vote(self, dispute_id: int, commitment: bytes) -> str: ...

    async def reveal_vote(self, dispute_id: int, vote: int, salt: int) -> str: ...

    async def read_commitment(self, dispute_id: int, voter_address: str) -> bytes: ...

    async def await_confirmation(self, tx_handle: str) -> ConfirmationReceipt: ...


def classify_ledger_error(exc: BaseException) -> Optional[SliceVotingError]:
    """
    Map a ledger-side exception into the error taxonomy.

    Only transport failures and timeouts are transient. Anything the node or
    contract refused is a rejection, so callers never blindly resubmit it.
    Returns None for exceptions that are not ledger failures (programming
    errors), which callers re-raise unchanged.
    """
    if isinstance(exc, SliceVotingError):
        return exc
    if isinstance(exc, ContractLogicError):
        return LedgerRejected(getattr(exc, "message", None) or str(exc) or "execution reverted")
    if isinstance(exc, (TimeExhausted, asyncio.TimeoutError)):
        return LedgerTransient(f"ledger timeout: {str(exc) or type(exc).__name__}")
    if isinstance(exc, (aiohttp.ClientError, OSError, ProviderConnectionError)):
        return LedgerTransient(f"ledger unavailable: {exc}")
    if isinstance(exc, Web3Exception):
        # RPC refusals (Web3RPCError), bad call output, validation errors
        return LedgerRejected(getattr(exc, "message", None) or str(exc) or type(exc).__name__)
    return None


class VotingOrchestrator:
    """
    Runs commit and reveal for one voter (the signer) across disputes.

    Usage:
        orch = VotingOrchestrator(ledger, signer, VoteStore())
        await orch.commit_vote("42", 1)
        ...
        result = await orch.reveal_vote("42")
    """

    def __init__(
        self,
        ledger: Ledger,
        signer: Signer,
        store: Optional[VoteStore] = None,
        *,
        domain: Optional[VoteDomain] = None,
        ledger_timeout_s: Optional[float] = 30.0,
        confirm_timeout_s: Optional[float] = 180.0,
        on_progress: Optional[Callable[[str], None]] = None,
    ):
        self.ledger = ledger
        self.signer = signer
        self.store = store
        self.domain = domain or VoteDomain()
        self.ledger_timeout_s = ledger_timeout_s
        self.confirm_timeout_s = confirm_timeout_s
        self.on_progress = on_progress
        self.logs = ""
        self._states: Dict[Tuple[str, str], VotePhase] = {}
        self._in_flight: Set[Tuple[str, str]] = set()

    # -- state ---------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return bool(self._in_flight)

    def _voter(self) -> str:
        address = self.signer.address
        if not address:
            raise WalletNotConnected("please connect your wallet")
        return address

    def _state_key(self, dispute_id: str, voter: str) -> Tuple[str, str]:
        return (dispute_id, voter.lower())

    def state(self, dispute_id: DisputeId) -> VotePhase:
        skey = self._state_key(canonical_dispute_id(dispute_id), self._voter())
        return self._states.get(skey, VotePhase.UNCOMMITTED)

    def reset(self, dispute_id: DisputeId) -> None:
        """Forget local state for a dispute (manual intervention after REVEAL_BLOCKED)."""
        skey = self._state_key(canonical_dispute_id(dispute_id), self._voter())
        previous = self._states.pop(skey, VotePhase.UNCOMMITTED)
        logger.info(f"Reset dispute {skey[0]} from {previous.value}")

    @contextmanager
    def _operation(self, skey: Tuple[str, str]) -> Iterator[None]:
        if skey in self._in_flight:
            raise InvalidTransition(f"an operation for dispute {skey[0]} is already in progress")
        self._in_flight.add(skey)
        try:
            yield
        finally:
            self._in_flight.discard(skey)

    def _progress(self, message: str) -> None:
        self.logs = message
        logger.info(message)
        if self.on_progress is not None:
            self.on_progress(message)

    # -- capabilities --------------------------------------------------

    async def _ledger(self, what: str, call: Awaitable[T], timeout: Optional[float]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except Exception as e:
            err = classify_ledger_error(e)
            if err is None or err is e:
                raise
            logger.warning(f"{what} failed: {err}")
            raise err from e

    async def _confirm(self, what: str, tx_handle: str) -> ConfirmationReceipt:
        receipt = await self._ledger(
            f"{what} confirmation",
            self.ledger.await_confirmation(tx_handle),
            self.confirm_timeout_s,
        )
        if not receipt.succeeded:
            raise LedgerRejected(f"{what} transaction {tx_handle} reverted")
        return receipt

    async def _derive_salt(self, dispute_id: str) -> int:
        signature = await self.signer.sign_message(get_signing_message(dispute_id))
        return derive_salt(signature)

    def _load_cached(self, key: VoteKey) -> Optional[StoredVoteRecord]:
        if self.store is None:
            return None
        try:
            return self.store.load(key)
        except CacheUnavailable as e:
            logger.warning(f"Vote cache unavailable, falling back to recovery: {e}")
            return None

    def _save_cached(self, key: VoteKey, vote: int, salt: int) -> Tuple[bool, Optional[StoredVoteRecord]]:
        if self.store is None:
            return False, None
        try:
            replaced = self.store.save(key, vote, salt)
        except CacheUnavailable as e:
            logger.warning(f"Could not cache vote for dispute {key.dispute_id}: {e}")
            return False, None
        if replaced is not None and (replaced.vote != vote or replaced.salt != salt):
            return True, replaced
        return True, None

    # -- phases --------------------------------------------------------

    async def commit_vote(self, dispute_id: DisputeId, vote: int) -> CommitResult:
        """
        Sign, derive the salt, publish the commitment and wait for it to be mined.

        Raises:
            ValueError: Vote outside the configured domain
            WalletNotConnected, SigningDeclined, LedgerTransient,
            LedgerRejected, InvalidTransition
        """
        voter = self._voter()
        d = canonical_dispute_id(dispute_id)
        if not self.domain.contains(vote):
            raise ValueError(f"vote must be in [0, {len(self.domain)})")
        skey = self._state_key(d, voter)

        with self._operation(skey):
            phase = self._states.get(skey, VotePhase.UNCOMMITTED)
            if phase is not VotePhase.UNCOMMITTED:
                raise InvalidTransition(f"cannot commit dispute {d}: vote is {phase.value}")

            key = VoteKey.of(self.ledger.contract_address, d, voter)
            if self._load_cached(key) is not None:
                raise InvalidTransition(f"a vote for dispute {d} is already cached; reveal it instead")

            self._progress("Generating secure commitment...")
            salt = await self._derive_salt(d)
            commitment = compute_commitment(vote, salt)
            logger.debug(f"Dispute {d}: salt {salt_fingerprint(salt)}..., commitment {to_hex32(commitment)}")

            self._progress("Sending commitment to blockchain...")
            tx = await self._ledger(
                "commitVote", self.ledger.commit_vote(int(d), commitment), self.ledger_timeout_s
            )
            self._progress("Waiting for confirmation...")
            await self._confirm("commitVote", tx)
            self._states[skey] = VotePhase.COMMITTED

            cached, replaced = self._save_cached(key, vote, salt)
            self._progress("Commitment confirmed on-chain.")
            return CommitResult(
                dispute_id=d,
                vote=vote,
                commitment=to_hex32(commitment),
                tx_hash=tx,
                cached=cached,
                replaced_cache_entry=replaced,
            )

    async def _resolve_vote(self, d: str, voter: str, published: bytes) -> Tuple[int, int, RevealSource]:
        key = VoteKey.of(self.ledger.contract_address, d, voter)
        record = self._load_cached(key)
        if record is not None:
            if self.domain.contains(record.vote) and verify_commitment(record.vote, record.salt, published):
                logger.info(f"Using cached vote for dispute {d}")
                return record.vote, record.salt, RevealSource.CACHE
            logger.warning(f"Cached vote for dispute {d} does not match the published commitment")

        self._progress("Local data missing. Recovering from signature...")
        salt = await self._derive_salt(d)
        vote = recover_vote(salt, published, self.domain)
        self._progress("Vote recovered! Revealing...")
        return vote, salt, RevealSource.RECOVERED

    async def recover(self, dispute_id: DisputeId) -> int:
        """Recover the committed vote without revealing it. Does not change state."""
        voter = self._voter()
        d = canonical_dispute_id(dispute_id)
        published = await self._ledger(
            "commitments", self.ledger.read_commitment(int(d), voter), self.ledger_timeout_s
        )
        if is_empty_commitment(published):
            raise LedgerRejected(f"no commitment published for dispute {d}")
        salt = await self._derive_salt(d)
        return recover_vote(salt, published, self.domain)

    async def reveal_vote(self, dispute_id: DisputeId) -> RevealResult:
        """
        Reveal the committed vote, from the cache when it verifies, otherwise
        by re-deriving the salt and searching the vote domain.

        Raises:
            RecoveryFailed: Nothing in the domain matches; the dispute is now
                REVEAL_BLOCKED until reset()
            WalletNotConnected, SigningDeclined, LedgerTransient,
            LedgerRejected, InvalidTransition
        """
        voter = self._voter()
        d = canonical_dispute_id(dispute_id)
        skey = self._state_key(d, voter)

        with self._operation(skey):
            phase = self._states.get(skey, VotePhase.UNCOMMITTED)
            if phase is VotePhase.REVEALED:
                raise InvalidTransition(f"vote for dispute {d} already revealed")
            if phase is VotePhase.REVEAL_BLOCKED:
                raise InvalidTransition(f"reveal for dispute {d} is blocked; reset() after fixing the account or domain")

            self._progress("Retrieving secret salt...")
            published = await self._ledger(
                "commitments", self.ledger.read_commitment(int(d), voter), self.ledger_timeout_s
            )
            if is_empty_commitment(published):
                raise LedgerRejected(f"no commitment published for dispute {d}")

            try:
                vote, salt, source = await self._resolve_vote(d, voter, published)
            except RecoveryFailed:
                self._states[skey] = VotePhase.REVEAL_BLOCKED
                logger.error(f"Reveal blocked for dispute {d}")
                raise

            self._states[skey] = VotePhase.REVEAL_PENDING
            try:
                tx = await self._ledger(
                    "revealVote", self.ledger.reveal_vote(int(d), vote, salt), self.ledger_timeout_s
                )
                self._progress("Waiting for confirmation...")
                await self._confirm("revealVote", tx)
            except BaseException:
                self._states[skey] = phase
                raise

            self._states[skey] = VotePhase.REVEALED
            self._progress("Vote revealed and counted.")
            return RevealResult(dispute_id=d, vote=vote, salt=salt, source=source, tx_hash=tx)
