"""
Slice contract client with fail-closed health checks.

Provides:
- Commitment reads (commitments(disputeId, juror))
- commitVote / revealVote transactions signed by a local account
- Receipt polling
- RPC health and chain-id checks
- Non-behavioral metrics

Exceptions from web3 are passed through untouched; the orchestrator
classifies them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.contract import AsyncContract

from slice_voting.commitment import WORD
from slice_voting.eth.metrics import Metrics
from slice_voting.eth.settings import Settings
from slice_voting.models import ConfirmationReceipt


# Minimal ABI (read/write only what we use)
SLICE_ABI = [
    {
        "type": "function",
        "name": "commitVote",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "disputeId", "type": "uint256"},
            {"name": "commitment", "type": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "revealVote",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "disputeId", "type": "uint256"},
            {"name": "vote", "type": "uint256"},
            {"name": "salt", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "commitments",
        "stateMutability": "view",
        "inputs": [
            {"name": "disputeId", "type": "uint256"},
            {"name": "juror", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "bytes32"}],
    },
]


@dataclass
class SliceLedger:
    """
    Ledger adapter for the Slice dispute contract.

    Transactions are built, signed locally and sent raw, so the RPC node
    never holds the juror's key.
    """

    w3: AsyncWeb3
    contract: AsyncContract
    account: LocalAccount
    metrics: Metrics
    confirm_timeout_s: float = 120.0

    @staticmethod
    def from_settings(
        settings: Settings,
        account: LocalAccount,
        *,
        metrics: Optional[Metrics] = None,
    ) -> SliceLedger:
        """
        Create client from environment configuration.

        Args:
            settings: Loaded Settings
            account: Juror account used to sign transactions
            metrics: Optional metrics instance
        """
        w3 = AsyncWeb3(AsyncHTTPProvider(settings.RPC_URL))
        contract = w3.eth.contract(
            address=Web3.to_checksum_address(settings.CONTRACT_ADDR), abi=SLICE_ABI
        )
        return SliceLedger(
            w3=w3,
            contract=contract,
            account=account,
            metrics=metrics or Metrics(),
            confirm_timeout_s=settings.CONFIRM_TIMEOUT_S,
        )

    @property
    def contract_address(self) -> str:
        return self.contract.address

    async def ping(self) -> bool:
        """Check RPC health by fetching current block number."""
        try:
            with self.metrics.timed("rpc_ping"):
                await self.w3.eth.block_number
            return True
        except Exception:
            return False

    async def close(self) -> None:
        """Release the provider's HTTP sessions."""
        await self.w3.provider.disconnect()

    async def verify_chain_id(self, expected: int) -> None:
        """
        Raises:
            RuntimeError: If the RPC endpoint serves a different chain
        """
        got = int(await self.w3.eth.chain_id)
        if got != expected:
            raise RuntimeError(f"CHAIN_MISMATCH expected={expected} got={got}")

    async def read_commitment(self, dispute_id: int, voter_address: str) -> bytes:
        """
        Read the commitment a juror published for a dispute.

        Returns:
            32-byte commitment (all zeros if the juror never committed)
        """
        with self.metrics.timed("commitment_read"):
            raw = await self.contract.functions.commitments(
                dispute_id, Web3.to_checksum_address(voter_address)
            ).call()
        out = bytes(raw)
        if len(out) != WORD:
            raise ValueError(f"unexpected commitment length {len(out)}")
        return out

    async def _send(self, fn, label: str) -> str:
        sender = self.account.address
        with self.metrics.timed(f"{label}_send"):
            nonce = await self.w3.eth.get_transaction_count(sender, "pending")
            tx = await fn.build_transaction({"from": sender, "nonce": nonce})
            signed = self.account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        self.metrics.inc(f"{label}_tx_total")
        return Web3.to_hex(tx_hash)

    async def commit_vote(self, dispute_id: int, commitment: bytes) -> str:
        return await self._send(
            self.contract.functions.commitVote(dispute_id, bytes(commitment)), "commit"
        )

    async def reveal_vote(self, dispute_id: int, vote: int, salt: int) -> str:
        return await self._send(
            self.contract.functions.revealVote(dispute_id, vote, salt), "reveal"
        )

    async def await_confirmation(self, tx_hash: str) -> ConfirmationReceipt:
        """
        Wait for the transaction to be mined.

        Raises:
            web3.exceptions.TimeExhausted: Not mined within confirm_timeout_s
        """
        with self.metrics.timed("confirmation"):
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.confirm_timeout_s
            )
        return ConfirmationReceipt(
            tx_hash=tx_hash,
            block_number=int(receipt["blockNumber"]),
            succeeded=int(receipt["status"]) == 1,
        )
