"""
Engine wiring.

Bundles the store, ledger, lifecycle, transaction pool, anchoring and event
handling into one object that the gateway and CLI share.

Usage:

    from optisettle.engine import SettlementEngine

    engine = SettlementEngine.from_settings()
    batch = engine.lifecycle.submit(transactions)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from optisettle.core.batcher import Batcher
from optisettle.core.ledger import Ledger
from optisettle.core.lifecycle import BatchLifecycle
from optisettle.core.pool import TransactionPool
from optisettle.core.settings import OptisettleSettings, get_settings
from optisettle.settlement.anchor import Ed25519RootSigner, RootAnchorer
from optisettle.settlement.events import SettlementEventHandler
from optisettle.store import BatchStore, InMemoryBatchStore, create_store
from optisettle.utils.timestamps import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SettlementEngine:
    store: BatchStore
    ledger: Ledger
    lifecycle: BatchLifecycle
    pool: TransactionPool = field(default_factory=TransactionPool)
    anchorer: Optional[RootAnchorer] = None
    events: Optional[SettlementEventHandler] = None

    def __post_init__(self) -> None:
        if self.events is None:
            self.events = SettlementEventHandler(self.lifecycle, self.ledger)

    @classmethod
    def build(
        cls,
        store: Optional[BatchStore] = None,
        *,
        settings: Optional[OptisettleSettings] = None,
        clock: Clock = utc_now,
        anchorer: Optional[RootAnchorer] = None,
    ) -> "SettlementEngine":
        settings = settings or get_settings()
        store = store if store is not None else InMemoryBatchStore()
        ledger = Ledger(store, clock=clock)
        lifecycle = BatchLifecycle(
            store,
            ledger,
            batcher=Batcher(store, clock=clock),
            clock=clock,
            challenge_period=settings.lifecycle.challenge_period,
        )
        return cls(store=store, ledger=ledger, lifecycle=lifecycle, anchorer=anchorer)

    @classmethod
    def from_settings(cls, settings: Optional[OptisettleSettings] = None) -> "SettlementEngine":
        settings = settings or get_settings()
        store = create_store(settings.store)
        anchorer = None
        if settings.runtime.signing_key_file:
            signer = Ed25519RootSigner.from_pem_file(settings.runtime.signing_key_file)
            anchorer = RootAnchorer(signer)
            logger.info("Root anchoring enabled with key %s", signer.key_id)
        logger.info(
            "Engine ready: store=%s challenge_period=%ss",
            settings.store.backend,
            settings.lifecycle.challenge_period_seconds,
        )
        return cls.build(store, settings=settings, anchorer=anchorer)
