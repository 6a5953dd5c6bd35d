"""
Core data model for the settlement engine.

Models:
- Transaction: an immutable value transfer between two addresses
- Batch: a committed, ordered group of transactions with one lifecycle status
- SettlementRecord: the ledger journal entry written when a batch settles

All models are frozen; the lifecycle produces new versions with
``dataclasses.replace`` instead of mutating in place. Wire form is camelCase.
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from decimal import (
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
)
from typing import Any, Dict, Mapping, Optional, Tuple

from optisettle.utils.timestamps import from_iso, to_iso

from .enums import BatchStatus
from .errors import ValidationError


# ===========================================================================
# Amounts and addresses
# ===========================================================================

MAX_AMOUNT_INTEGER_DIGITS = 30
MAX_AMOUNT_DECIMALS = 18

# Wide enough that sums of bounded amounts never round; any rounding traps.
AMOUNT_CONTEXT = Context(
    prec=100,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)

_AMOUNT_QUANTUM = Decimal(1).scaleb(-MAX_AMOUNT_DECIMALS)


def parse_amount(value: Any) -> Decimal:
    """
    Parse an unsigned decimal amount.

    Accepts Decimal, int, or numeric strings. Floats are converted through
    ``str`` so ``0.1`` stays ``0.1``. Negative, NaN and infinite values are
    rejected, as are amounts with more than ``MAX_AMOUNT_INTEGER_DIGITS``
    integer digits or more than ``MAX_AMOUNT_DECIMALS`` decimal places.
    """
    if isinstance(value, bool):
        raise ValidationError(f"invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"invalid amount: {value!r}")
    if amount < 0:
        raise ValidationError(f"amount must not be negative: {value!r}")
    if amount != 0 and amount.adjusted() >= MAX_AMOUNT_INTEGER_DIGITS:
        raise ValidationError(
            f"amount exceeds {MAX_AMOUNT_INTEGER_DIGITS} integer digits: {value!r}"
        )
    try:
        amount.quantize(_AMOUNT_QUANTUM, context=AMOUNT_CONTEXT)
    except DecimalException:
        raise ValidationError(
            f"amount has more than {MAX_AMOUNT_DECIMALS} decimal places: {value!r}"
        )
    return amount


def canonical_amount(amount: Decimal) -> str:
    """Normalized fixed-point text form: Decimal("10.50") -> "10.5"."""
    if amount == 0:
        return "0"
    return format(amount.normalize(AMOUNT_CONTEXT), "f")


def normalize_address(address: Any) -> str:
    if not isinstance(address, str) or not address.strip():
        raise ValidationError(f"invalid address: {address!r}")
    return address.strip().lower()


# ===========================================================================
# Transaction
# ===========================================================================


@dataclass(frozen=True)
class Transaction:
    """
    A value transfer. Identity is derived from content (see
    ``optisettle.merkle.tree.hash_transaction``), never assigned.

    Addresses are stored lowercased; amounts must be strictly positive.
    """

    sender: str
    recipient: str
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "sender", normalize_address(self.sender))
        object.__setattr__(self, "recipient", normalize_address(self.recipient))
        amount = parse_amount(self.amount)
        if amount == 0:
            raise ValidationError("transaction amount must be positive")
        object.__setattr__(self, "amount", amount)

    def canonical_fields(self) -> Dict[str, str]:
        """Fields in hashing order: sender, recipient, amount."""
        return {
            "sender": self.sender,
            "recipient": self.recipient,
            "amount": canonical_amount(self.amount),
        }

    def to_dict(self) -> Dict[str, Any]:
        return self.canonical_fields()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        if not isinstance(data, Mapping):
            raise ValidationError("transaction must be an object")
        try:
            return cls(
                sender=data["sender"],
                recipient=data["recipient"],
                amount=data["amount"],
            )
        except KeyError as e:
            raise ValidationError(f"transaction missing field: {e.args[0]}")


# ===========================================================================
# Batch
# ===========================================================================


@dataclass(frozen=True)
class Batch:
    """
    A committed group of transactions.

    Attributes:
        batch_id: Unique identifier assigned by the batcher
        transactions_root: Commitment tree root over ``transactions``
        transactions: Ordered, immutable transaction list
        created_at: When the batch was created
        status: Lifecycle status
        rejection_reason: Why the batch was rejected (rejected only)
        challenge_deadline: End of the challenge window (set on verify)
        verified_at: When the ledger effect was applied
        finalized_at: When the batch became final
    """

    batch_id: str
    transactions_root: str
    transactions: Tuple[Transaction, ...]
    created_at: _dt.datetime
    status: BatchStatus = BatchStatus.PENDING
    rejection_reason: Optional[str] = None
    challenge_deadline: Optional[_dt.datetime] = None
    verified_at: Optional[_dt.datetime] = None
    finalized_at: Optional[_dt.datetime] = None

    @property
    def leaf_count(self) -> int:
        return len(self.transactions)

    def involves(self, address: str) -> bool:
        address = address.lower()
        return any(tx.sender == address or tx.recipient == address for tx in self.transactions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "transactionsRoot": self.transactions_root,
            "transactions": [tx.to_dict() for tx in self.transactions],
            "createdAt": to_iso(self.created_at),
            "status": self.status.value,
            "rejectionReason": self.rejection_reason,
            "challengeDeadline": to_iso(self.challenge_deadline),
            "verifiedAt": to_iso(self.verified_at),
            "finalizedAt": to_iso(self.finalized_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Batch":
        return cls(
            batch_id=data["batchId"],
            transactions_root=data["transactionsRoot"],
            transactions=tuple(Transaction.from_dict(tx) for tx in data["transactions"]),
            created_at=from_iso(data["createdAt"]),
            status=BatchStatus(data.get("status", BatchStatus.PENDING.value)),
            rejection_reason=data.get("rejectionReason"),
            challenge_deadline=from_iso(data.get("challengeDeadline")),
            verified_at=from_iso(data.get("verifiedAt")),
            finalized_at=from_iso(data.get("finalizedAt")),
        )


# ===========================================================================
# Settlement record
# ===========================================================================


@dataclass(frozen=True)
class SettlementRecord:
    """
    Ledger journal entry for one settled batch.

    ``deltas`` holds the signed net balance change per address. A record is
    written together with the balances it produced, and reversal writes a new
    version with ``reversed_at`` set rather than deleting it.
    """

    batch_id: str
    deltas: Mapping[str, Decimal]
    applied_at: _dt.datetime
    reversed_at: Optional[_dt.datetime] = None

    @property
    def is_reversed(self) -> bool:
        return self.reversed_at is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "deltas": {addr: str(delta) for addr, delta in sorted(self.deltas.items())},
            "appliedAt": to_iso(self.applied_at),
            "reversedAt": to_iso(self.reversed_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SettlementRecord":
        return cls(
            batch_id=data["batchId"],
            deltas={addr: Decimal(delta) for addr, delta in data["deltas"].items()},
            applied_at=from_iso(data["appliedAt"]),
            reversed_at=from_iso(data.get("reversedAt")),
        )


@dataclass(frozen=True)
class ChallengeOutcome:
    """Result of adjudicating a fraud challenge."""

    batch_id: str
    accepted: bool
    reason: str
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "accepted": self.accepted,
            "reason": self.reason,
            "code": self.code,
        }
