"""
Commitment tree primitives.

Turns an ordered transaction list into a single root digest and per-leaf
inclusion proofs, and verifies proofs against a root.
"""

from optisettle.merkle.tree import (
    CommitmentTree,
    Digest,
    compute_root,
    encode_transaction,
    hash_pair,
    hash_transaction,
    verify_proof,
)

__all__ = [
    "CommitmentTree",
    "Digest",
    "compute_root",
    "encode_transaction",
    "hash_pair",
    "hash_transaction",
    "verify_proof",
]
