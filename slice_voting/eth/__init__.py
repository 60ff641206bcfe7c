"""
Ethereum-compatible adapters for the voting engine.

Contract access, wallet signing and configuration. The engine itself only
sees the Ledger and Signer protocols.
"""

from slice_voting.eth.chain_client import SLICE_ABI, SliceLedger
from slice_voting.eth.metrics import Metrics
from slice_voting.eth.settings import Settings
from slice_voting.eth.signer import LocalAccountSigner, PromptingSigner

__all__ = [
    "SLICE_ABI",
    "SliceLedger",
    "Metrics",
    "Settings",
    "LocalAccountSigner",
    "PromptingSigner",
]
