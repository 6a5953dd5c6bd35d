"""
Commitment Tree

Binary hash tree over an ordered transaction list.

Key features:
- SHA3-256 leaf and node hashing, digests rendered as 0x-prefixed hex
- Sorted-pair node hashing: each parent is H(min(l, r) || max(l, r)), so a
  proof is a plain list of sibling digests with no left/right directions
- Odd nodes are promoted unchanged to the next layer (no self-duplication)
- Build-once, read-many: a tree never changes after construction

Sorting pairs drops positional information, so proofs alone do not pin a leaf
to an index. Batch commitments still depend on order because pairing is
positional: swapping transactions across pair boundaries changes the root.
"""

from __future__ import annotations

import hashlib
from typing import List, Sequence, Tuple

from optisettle.protocol.errors import EmptyInputError, IndexOutOfRangeError
from optisettle.protocol.models import Transaction
from optisettle.utils.encoding import canonical_json

Digest = str

DIGEST_SIZE = 32


# ===========================================================================
# Hash Functions
# ===========================================================================


def _h(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


def _to_hex(raw: bytes) -> Digest:
    return "0x" + raw.hex()


def _from_hex(digest: Digest) -> bytes:
    """
    Decode a digest. Raises ValueError for anything that is not a 0x-prefixed
    (or bare) 32-byte hex string.
    """
    if not isinstance(digest, str):
        raise ValueError(f"digest must be a string, got {type(digest).__name__}")
    body = digest[2:] if digest[:2].lower() == "0x" else digest
    raw = bytes.fromhex(body)
    if len(raw) != DIGEST_SIZE:
        raise ValueError(f"digest must be {DIGEST_SIZE} bytes, got {len(raw)}")
    return raw


def encode_transaction(tx: Transaction) -> bytes:
    """Canonical leaf encoding: compact JSON with keys sender, recipient, amount."""
    return canonical_json(tx.canonical_fields())


def hash_transaction(tx: Transaction) -> Digest:
    """Leaf digest for a transaction."""
    return _to_hex(_h(encode_transaction(tx)))


def hash_pair(left: Digest, right: Digest) -> Digest:
    """
    Hash two sibling digests.

    The children are ordered by their byte value before hashing, which makes
    the parent independent of which side each child sits on.
    """
    a, b = sorted((_from_hex(left), _from_hex(right)))
    return _to_hex(_h(a + b))


# ===========================================================================
# Commitment Tree
# ===========================================================================


class CommitmentTree:
    """
    Commitment tree over an ordered transaction sequence.

    Usage:
        tree = CommitmentTree.build(transactions)
        root = tree.root
        proof = tree.proof(2)
        assert CommitmentTree.verify(transactions[2], proof, root)
    """

    def __init__(self, layers: List[List[Digest]]):
        # layers[0] = leaves, layers[-1] = [root]
        self._layers: Tuple[Tuple[Digest, ...], ...] = tuple(tuple(layer) for layer in layers)

    @classmethod
    def build(cls, transactions: Sequence[Transaction]) -> "CommitmentTree":
        """
        Build the tree bottom-up.

        Raises:
            EmptyInputError: If ``transactions`` is empty
        """
        if len(transactions) == 0:
            raise EmptyInputError("cannot build a commitment tree with no transactions")
        return cls.from_leaf_hashes([hash_transaction(tx) for tx in transactions])

    @classmethod
    def from_leaf_hashes(cls, leaves: Sequence[Digest]) -> "CommitmentTree":
        if len(leaves) == 0:
            raise EmptyInputError("cannot build a commitment tree with no leaves")

        layers: List[List[Digest]] = [list(leaves)]
        while len(layers[-1]) > 1:
            current = layers[-1]
            nxt: List[Digest] = []
            for i in range(0, len(current), 2):
                if i + 1 < len(current):
                    nxt.append(hash_pair(current[i], current[i + 1]))
                else:
                    # Odd node out: promoted as-is
                    nxt.append(current[i])
            layers.append(nxt)
        return cls(layers)

    @property
    def root(self) -> Digest:
        return self._layers[-1][0]

    @property
    def leaf_count(self) -> int:
        return len(self._layers[0])

    @property
    def depth(self) -> int:
        """Number of layers above the leaves."""
        return len(self._layers) - 1

    @property
    def layers(self) -> Tuple[Tuple[Digest, ...], ...]:
        return self._layers

    def leaf(self, index: int) -> Digest:
        self._check_index(index)
        return self._layers[0][index]

    def leaves(self) -> List[Digest]:
        return list(self._layers[0])

    def index_of(self, tx: Transaction) -> int:
        """First leaf index committing ``tx``, or -1."""
        target = hash_transaction(tx)
        for i, leaf in enumerate(self._layers[0]):
            if leaf == target:
                return i
        return -1

    def proof(self, index: int) -> List[Digest]:
        """
        Inclusion proof for the leaf at ``index``.

        One sibling digest per layer, walking upward; layers where the node
        was promoted without a sibling contribute nothing.

        Raises:
            IndexOutOfRangeError: If ``index`` is outside ``[0, leaf_count)``
        """
        self._check_index(index)

        proof: List[Digest] = []
        current = index
        for layer in self._layers[:-1]:
            sibling = current ^ 1
            if sibling < len(layer):
                proof.append(layer[sibling])
            current //= 2
        return proof

    @staticmethod
    def verify(transaction: Transaction, proof: Sequence[Digest], root: Digest) -> bool:
        """
        Check that ``transaction`` is committed under ``root``.

        Pure function. Malformed digests make the proof invalid instead of
        raising.
        """
        try:
            current = hash_transaction(transaction)
            for sibling in proof:
                current = hash_pair(current, sibling)
            return _from_hex(current) == _from_hex(root)
        except (ValueError, TypeError):
            return False

    def _check_index(self, index: int) -> None:
        if not isinstance(index, int) or isinstance(index, bool):
            raise IndexOutOfRangeError(f"leaf index must be an integer, got {index!r}")
        if index < 0 or index >= self.leaf_count:
            raise IndexOutOfRangeError(
                f"leaf index {index} out of range [0, {self.leaf_count})"
            )


# ===========================================================================
# Convenience Functions
# ===========================================================================


def compute_root(transactions: Sequence[Transaction]) -> Digest:
    """Root digest for ``transactions`` without keeping the tree."""
    return CommitmentTree.build(transactions).root


def verify_proof(transaction: Transaction, proof: Sequence[Digest], root: Digest) -> bool:
    return CommitmentTree.verify(transaction, proof, root)
