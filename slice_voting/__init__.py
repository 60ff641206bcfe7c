"""
Slice Voting - commit-reveal juror voting.

Votes are bound to a salt derived from a wallet signature, published as a
Keccak-256 commitment and revealed later. The salt is never persisted by
anything the protocol depends on: losing the local cache only means the
vote is recovered by searching the (small) vote domain.
"""

__version__ = "0.1.0"

# Frozen: changing it breaks recovery of every existing commitment.
SALT_MESSAGE_PREFIX = "SLICE_VOTE_SALT:"

DEFAULT_VOTE_DOMAIN_SIZE = 2
