"""
Settlement-layer events.

The primary ledger emits events; a listener (chain watcher, webhook, queue
consumer) turns them into ``SettlementEvent`` objects and hands them to
``SettlementEventHandler``. The handler performs no remote I/O.

Event payloads:
    BatchVerified   {"batchId": str}
    BatchFinalized  {"batchId": str}
    FundsDeposited  {"address": str, "amount": str}
    FundsWithdrawn  {"address": str, "amount": str}

Batch events tolerate redelivery. Fund events are applied once per delivery,
so the listener deduplicates them by primary-ledger transaction hash.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from optisettle.core.ledger import Ledger
from optisettle.core.lifecycle import BatchLifecycle
from optisettle.protocol.enums import SettlementEventKind
from optisettle.protocol.errors import ValidationError
from optisettle.protocol.models import normalize_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementEvent:
    kind: SettlementEventKind
    payload: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SettlementEvent":
        try:
            kind = SettlementEventKind(data.get("kind"))
        except ValueError:
            raise ValidationError(f"unknown settlement event kind: {data.get('kind')!r}")
        return cls(kind=kind, payload=dict(data.get("payload") or {}))

    def require(self, key: str) -> Any:
        if key not in self.payload:
            raise ValidationError(f"{self.kind.value} event missing '{key}'")
        return self.payload[key]


class SettlementEventHandler:
    def __init__(self, lifecycle: BatchLifecycle, ledger: Ledger) -> None:
        self._lifecycle = lifecycle
        self._ledger = ledger

    def handle(self, event: SettlementEvent) -> Dict[str, Any]:
        """Apply one event. Returns a JSON-serializable summary."""
        logger.info("Handling settlement event %s", event.kind.value)

        if event.kind == SettlementEventKind.BATCH_VERIFIED:
            batch = self._lifecycle.verify(event.require("batchId"))
            return {"batch": batch.to_dict()}

        if event.kind == SettlementEventKind.BATCH_FINALIZED:
            batch = self._lifecycle.finalize(event.require("batchId"))
            return {"batch": batch.to_dict()}

        if event.kind == SettlementEventKind.FUNDS_DEPOSITED:
            address = normalize_address(event.require("address"))
            balance = self._ledger.deposit(address, event.require("amount"))
            return {"address": address, "balance": str(balance)}

        if event.kind == SettlementEventKind.FUNDS_WITHDRAWN:
            address = normalize_address(event.require("address"))
            balance = self._ledger.withdraw(address, event.require("amount"))
            return {"address": address, "balance": str(balance)}

        raise ValidationError(f"unhandled settlement event kind: {event.kind.value}")
