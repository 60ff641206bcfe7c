"""
Wallet signing capabilities.

Salts depend on signatures being reproducible: eth_account signs with
RFC 6979 deterministic nonces, so the same key and message always give
the same 65-byte signature.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from slice_voting.errors import SigningDeclined

logger = logging.getLogger(__name__)


class LocalAccountSigner:
    """EIP-191 personal_sign with a local private key."""

    def __init__(self, account: LocalAccount):
        self.account = account

    @staticmethod
    def from_key(private_key: str) -> LocalAccountSigner:
        return LocalAccountSigner(Account.from_key(private_key))

    @property
    def address(self) -> Optional[str]:
        return self.account.address

    async def sign_message(self, message: str) -> bytes:
        signed = self.account.sign_message(encode_defunct(text=message))
        return bytes(signed.signature)


def _stdin_confirm(prompt: str) -> bool:
    return input(prompt).strip().lower() in ("y", "yes")


def _settle(fut: asyncio.Future, result, exc: Optional[BaseException]) -> None:
    if fut.done():
        return
    if exc is not None:
        fut.set_exception(exc)
    else:
        fut.set_result(result)


async def _ask_in_daemon_thread(confirm: Callable[[str], bool], prompt: str) -> bool:
    """
    Run a blocking prompt on a daemon thread.

    A blocked input() cannot be interrupted. Unlike asyncio.to_thread, a
    daemon thread is not joined when the loop shuts down, so cancelling the
    prompt (Ctrl-C) returns immediately and the reader dies with the process.
    """
    loop = asyncio.get_running_loop()
    fut = loop.create_future()

    def worker() -> None:
        try:
            ok = confirm(prompt)
        except BaseException as e:
            result, exc = None, e
        else:
            result, exc = ok, None
        try:
            loop.call_soon_threadsafe(_settle, fut, result, exc)
        except RuntimeError:
            # Prompt outlived the event loop; nobody is waiting for the answer
            pass

    threading.Thread(target=worker, name="slice-vote-prompt", daemon=True).start()
    return await fut


class PromptingSigner:
    """
    Ask the user before every signature, like a wallet popup.

    Answering anything but yes raises SigningDeclined.
    """

    def __init__(self, inner: LocalAccountSigner, confirm: Callable[[str], bool] = _stdin_confirm):
        self.inner = inner
        self.confirm = confirm

    @property
    def address(self) -> Optional[str]:
        return self.inner.address

    async def sign_message(self, message: str) -> bytes:
        prompt = f"\nSign message {message!r} with {self.inner.address}? [y/N] "
        ok = await _ask_in_daemon_thread(self.confirm, prompt)
        if not ok:
            logger.info("Signature request declined")
            raise SigningDeclined("signature request declined")
        return await self.inner.sign_message(message)
