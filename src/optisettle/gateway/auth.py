"""
Operator authorization for the gateway.

Authorization is a capability check injected into the app; the core never
knows who is calling. Operator-only routes read the caller address from the
``X-Operator-Address`` header.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

OPERATOR_HEADER = "X-Operator-Address"


class Authorizer(Protocol):
    def is_operator(self, address: Optional[str]) -> bool:
        ...


class StaticOperatorSet:
    """Allow-list of operator addresses (case-insensitive)."""

    def __init__(self, operators: Iterable[str]) -> None:
        self._operators = frozenset(op.strip().lower() for op in operators if op.strip())

    def is_operator(self, address: Optional[str]) -> bool:
        if not address:
            return False
        return address.strip().lower() in self._operators

    def __len__(self) -> int:
        return len(self._operators)
