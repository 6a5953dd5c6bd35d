"""
Request models for the HTTP gateway.

Parsing and validation live here so the core only ever receives
already-validated domain objects.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from optisettle.protocol.models import Transaction, normalize_address, parse_amount
from optisettle.protocol.errors import ValidationError as DomainValidationError


class TransactionIn(BaseModel):
    sender: str = Field(min_length=1)
    recipient: str = Field(min_length=1)
    amount: str = Field(description="Positive decimal amount as a string.")

    @field_validator("sender", "recipient")
    @classmethod
    def _address(cls, v: str) -> str:
        try:
            return normalize_address(v)
        except DomainValidationError as e:
            raise ValueError(e.message)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v) -> str:
        try:
            amount = parse_amount(v)
        except DomainValidationError as e:
            raise ValueError(e.message)
        if amount == 0:
            raise ValueError("amount must be positive")
        return str(amount)

    def to_domain(self) -> Transaction:
        return Transaction(self.sender, self.recipient, Decimal(self.amount))


class CreateBatchRequest(BaseModel):
    transactions: List[TransactionIn] = Field(default_factory=list)
    from_pool: bool = Field(
        default=False,
        alias="fromPool",
        description="Cut the batch from the pending pool instead of the body.",
    )
    limit: Optional[int] = Field(default=None, gt=0)

    model_config = {"populate_by_name": True}


class ChallengeRequest(BaseModel):
    disputed_transaction: TransactionIn = Field(alias="disputedTransaction")
    merkle_proof: List[str] = Field(alias="merkleProof")

    model_config = {"populate_by_name": True}


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1)


class SettlementEventIn(BaseModel):
    kind: str
    payload: dict = Field(default_factory=dict)
