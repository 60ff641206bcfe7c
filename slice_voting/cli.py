from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from slice_voting.errors import SliceVotingError
from slice_voting.eth.chain_client import SliceLedger
from slice_voting.eth.settings import Settings
from slice_voting.eth.signer import LocalAccountSigner, PromptingSigner
from slice_voting.orchestrator import VotingOrchestrator
from slice_voting.recovery import VoteDomain
from slice_voting.salt import get_signing_message
from slice_voting.store import MemoryBackend, SealedFileBackend, VoteStore, cache_key_from_hex

EX_TEMPFAIL = 75


def load_signer(skip_prompt: bool):
    key = os.getenv("SLICE_PRIVATE_KEY")
    if not key:
        raise SystemExit("❌ Missing SLICE_PRIVATE_KEY")
    signer = LocalAccountSigner.from_key(key)
    return signer if skip_prompt else PromptingSigner(signer)


def build_store(settings: Settings) -> VoteStore:
    if settings.CACHE_DIR:
        backend = SealedFileBackend(settings.CACHE_DIR, cache_key_from_hex(settings.CACHE_KEY))
        return VoteStore(backend)
    return VoteStore(MemoryBackend())


def cache_is_ephemeral(store: Optional[VoteStore]) -> bool:
    """True when cached votes die with the process."""
    return store is None or isinstance(store.backend, MemoryBackend)


@asynccontextmanager
async def open_orchestrator(args) -> AsyncIterator[VotingOrchestrator]:
    """Build an orchestrator and close the RPC session on the way out."""
    settings = Settings.load()
    signer = load_signer(args.yes)
    account = signer.account if isinstance(signer, LocalAccountSigner) else signer.inner.account
    ledger = SliceLedger.from_settings(settings, account)
    try:
        # Startup chain checks (fail-closed when STRICT_CHAIN)
        if not await ledger.ping():
            if settings.STRICT_CHAIN:
                raise SystemExit("❌ Chain unreachable (STRICT_CHAIN=true)")
            logging.getLogger(__name__).warning("Chain unreachable, continuing (STRICT_CHAIN=false)")
        elif settings.STRICT_CHAIN:
            await ledger.verify_chain_id(settings.CHAIN_ID)

        yield VotingOrchestrator(
            ledger,
            signer,
            build_store(settings),
            domain=VoteDomain(settings.VOTE_DOMAIN_SIZE),
            ledger_timeout_s=settings.LEDGER_TIMEOUT_S,
            confirm_timeout_s=settings.CONFIRM_TIMEOUT_S + settings.LEDGER_TIMEOUT_S,
            on_progress=lambda msg: print(f"⏳ {msg}"),
        )
    finally:
        await ledger.close()


def cmd_message(args) -> None:
    print(get_signing_message(args.dispute_id))


async def cmd_commit(args) -> None:
    async with open_orchestrator(args) as orch:
        res = await orch.commit_vote(args.dispute_id, args.vote)
        print(f"\n✅ Vote committed for dispute {res.dispute_id}")
        print(f"Commitment: {res.commitment}")
        print(f"Tx:         {res.tx_hash}")
        if not res.cached:
            print("⚠️  Vote not cached locally; reveal will re-sign to recover it")
        elif cache_is_ephemeral(orch.store):
            print("⚠️  Vote cached in memory only (SLICE_CACHE_DIR unset); reveal will re-sign to recover it")


async def cmd_reveal(args) -> None:
    async with open_orchestrator(args) as orch:
        res = await orch.reveal_vote(args.dispute_id)
        print(f"\n✅ Vote revealed for dispute {res.dispute_id}")
        print(f"Vote:   {res.vote} ({res.source.value})")
        print(f"Tx:     {res.tx_hash}")


async def cmd_recover(args) -> None:
    async with open_orchestrator(args) as orch:
        vote = await orch.recover(args.dispute_id)
        print(f"\n🔍 Committed vote for dispute {args.dispute_id}: {vote}")


def run(args) -> int:
    try:
        result = args.func(args)
        if asyncio.iscoroutine(result):
            asyncio.run(result)
    except SliceVotingError as e:
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        return EX_TEMPFAIL if e.retryable else 1
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2
    except RuntimeError as e:
        # Settings and chain checks fail closed
        print(f"❌ {e}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="slice-vote")
    p.add_argument("--yes", action="store_true", help="Sign without confirmation prompt")
    p.add_argument("--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    m = sub.add_parser("message", help="Print the salt signing message for a dispute")
    m.add_argument("dispute_id")
    m.set_defaults(func=cmd_message)

    c = sub.add_parser("commit", help="Commit a vote")
    c.add_argument("dispute_id")
    c.add_argument("vote", type=int)
    c.set_defaults(func=cmd_commit)

    r = sub.add_parser("reveal", help="Reveal a committed vote")
    r.add_argument("dispute_id")
    r.set_defaults(func=cmd_reveal)

    rc = sub.add_parser("recover", help="Recover a committed vote without revealing")
    rc.add_argument("dispute_id")
    rc.set_defaults(func=cmd_recover)

    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
