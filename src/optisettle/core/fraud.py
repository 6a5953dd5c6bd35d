"""
Fraud rules applied to a challenged batch.

A rule receives the stored batch and a transaction the challenger has already
proven to be committed under the batch root. It returns a human-readable
reason when the batch is fraudulent, or None when it has no objection.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from optisettle.merkle.tree import compute_root, hash_transaction
from optisettle.protocol.errors import EmptyInputError
from optisettle.protocol.models import Batch, Transaction

FraudRule = Callable[[Batch, Transaction], Optional[str]]


def root_mismatch(batch: Batch, tx: Transaction) -> Optional[str]:
    """The stored body no longer hashes to the recorded root."""
    try:
        recomputed = compute_root(batch.transactions)
    except EmptyInputError:
        return "batch body is empty but a root was committed"
    if recomputed != batch.transactions_root:
        return (
            f"transactions root mismatch: recorded {batch.transactions_root}, "
            f"recomputed {recomputed}"
        )
    return None


def omitted_transaction(batch: Batch, tx: Transaction) -> Optional[str]:
    """A committed transaction is missing from the stored body."""
    target = hash_transaction(tx)
    if any(hash_transaction(candidate) == target for candidate in batch.transactions):
        return None
    return f"committed transaction {target} is missing from the batch body"


def self_transfer(batch: Batch, tx: Transaction) -> Optional[str]:
    if tx.sender == tx.recipient:
        return f"transaction {hash_transaction(tx)} transfers from {tx.sender} to itself"
    return None


DEFAULT_RULES: Sequence[FraudRule] = (root_mismatch, omitted_transaction, self_transfer)


def evaluate(batch: Batch, tx: Transaction, rules: Sequence[FraudRule] = DEFAULT_RULES) -> Optional[str]:
    """First objection raised by ``rules``, or None."""
    for rule in rules:
        reason = rule(batch, tx)
        if reason:
            return reason
    return None
