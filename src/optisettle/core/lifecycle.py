"""
Batch Lifecycle

State machine governing a batch from submission to settlement:

    pending --verify--> verified --finalize--> finalized
       |                   |
       +------reject-------+-----challenge---> rejected

CRITICAL INVARIANTS:
1. Status only moves forward; finalized and rejected are terminal
2. The ledger effect is applied once, at verify, and reversed at most once,
   when a verified batch is rejected
3. Transitions of one batch never interleave (per-batch lock)
4. Retrying a transition that already happened is a no-op success;
   any other transition from an incompatible state is an error

Crash safety: at verify, the ledger's settlement record is the commit point.
If the batch status cannot be saved afterwards, retrying verify finds the
record, skips the ledger and completes the status change.
At reject, the reversed record is the commit point. If the rejected status is
lost, the next verify, challenge or finalize completes the rejection and
refuses the requested transition.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import logging
from typing import List, Optional, Sequence, Tuple

from optisettle.merkle.tree import CommitmentTree, Digest
from optisettle.protocol.enums import BatchStatus
from optisettle.protocol.errors import (
    ChallengeWindowClosedError,
    ChallengeWindowOpenError,
    IllegalTransitionError,
    InvalidProofError,
)
from optisettle.protocol.models import Batch, Transaction, normalize_address
from optisettle.store.base import BatchStore
from optisettle.utils.timestamps import Clock, to_iso, utc_now

from . import fraud
from .batcher import Batcher
from .ledger import Ledger
from .locks import KeyedLock
from .pool import TransactionPool
from .settings import DEFAULT_CHALLENGE_PERIOD_SECONDS

logger = logging.getLogger(__name__)


class BatchLifecycle:
    """
    Drives batch transitions and keeps the ledger consistent with them.

    Usage:
        lifecycle = BatchLifecycle(store, ledger)
        batch = lifecycle.submit([Transaction("a", "b", 10)])
        lifecycle.verify(batch.batch_id)
        ...
        lifecycle.finalize(batch.batch_id)
    """

    def __init__(
        self,
        store: BatchStore,
        ledger: Ledger,
        *,
        batcher: Optional[Batcher] = None,
        clock: Clock = utc_now,
        challenge_period: _dt.timedelta = _dt.timedelta(seconds=DEFAULT_CHALLENGE_PERIOD_SECONDS),
        fraud_rules: Sequence[fraud.FraudRule] = fraud.DEFAULT_RULES,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._batcher = batcher or Batcher(store, clock=clock)
        self._clock = clock
        self._challenge_period = challenge_period
        self._fraud_rules = tuple(fraud_rules)
        self._locks = KeyedLock()

    @property
    def challenge_period(self) -> _dt.timedelta:
        return self._challenge_period

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, transactions: Sequence[Transaction]) -> Batch:
        return self._batcher.create_batch(transactions)

    def submit_from_pool(self, pool: TransactionPool, limit: Optional[int] = None) -> Batch:
        return self._batcher.create_batch_from_pool(pool, limit)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def verify(self, batch_id: str) -> Batch:
        """
        pending -> verified. Settles the batch into the ledger and opens the
        challenge window.

        Raises:
            InsufficientBalanceError: The batch stays pending
            IllegalTransitionError: From finalized or rejected
        """
        with self._locks.hold(batch_id):
            batch = self._store.load_batch(batch_id)
            self._raise_if_reversed(batch, "verify")
            if batch.status == BatchStatus.VERIFIED:
                return batch
            if batch.status != BatchStatus.PENDING:
                raise IllegalTransitionError(batch_id, batch.status, "verify")

            self._ledger.apply_batch(batch)

            now = self._clock()
            verified = dataclasses.replace(
                batch,
                status=BatchStatus.VERIFIED,
                verified_at=now,
                challenge_deadline=now + self._challenge_period,
            )
            self._store.save_batch(verified)

        logger.info(
            "Batch %s verified; challenge window open until %s",
            batch_id,
            to_iso(verified.challenge_deadline),
        )
        return verified

    def challenge(
        self,
        batch_id: str,
        disputed_transaction: Transaction,
        merkle_proof: Sequence[Digest],
    ) -> Batch:
        """
        Adjudicate a fraud challenge against a verified batch.

        The proof must show that ``disputed_transaction`` is committed under
        the batch root. The fraud rules then decide whether the batch is
        invalid; if so it is rejected and its ledger effect reversed.

        Returns the rejected batch.

        Raises:
            ChallengeWindowClosedError: Batch not verified, or deadline passed
            InvalidProofError: Proof does not verify, or no rule objects
        """
        with self._locks.hold(batch_id):
            batch = self._store.load_batch(batch_id)
            self._raise_if_reversed(batch, "challenge")
            self._require_open_window(batch)

            if not CommitmentTree.verify(disputed_transaction, merkle_proof, batch.transactions_root):
                logger.warning("Challenge on batch %s rejected: proof does not verify", batch_id)
                raise InvalidProofError(
                    "proof does not show the disputed transaction under the batch root"
                )

            reason = fraud.evaluate(batch, disputed_transaction, self._fraud_rules)
            if reason is None:
                logger.warning("Challenge on batch %s rejected: no fraud demonstrated", batch_id)
                raise InvalidProofError("disputed transaction is consistent with the batch")

            rejected = self._reject_locked(batch, f"fraud proven: {reason}")
        return rejected

    def finalize(self, batch_id: str) -> Batch:
        """
        verified -> finalized, once the challenge window has closed.

        Raises:
            ChallengeWindowOpenError: Called before the deadline
            IllegalTransitionError: From pending or rejected
        """
        with self._locks.hold(batch_id):
            batch = self._store.load_batch(batch_id)
            self._raise_if_reversed(batch, "finalize")
            if batch.status == BatchStatus.FINALIZED:
                return batch
            if batch.status != BatchStatus.VERIFIED:
                raise IllegalTransitionError(batch_id, batch.status, "finalize")

            now = self._clock()
            if now < batch.challenge_deadline:
                raise ChallengeWindowOpenError(
                    f"challenge window for batch {batch_id} is open until "
                    f"{to_iso(batch.challenge_deadline)}"
                )

            finalized = dataclasses.replace(batch, status=BatchStatus.FINALIZED, finalized_at=now)
            self._store.save_batch(finalized)

        logger.info("Batch %s finalized", batch_id)
        return finalized

    def reject(self, batch_id: str, reason: str) -> Batch:
        """
        pending|verified -> rejected. A verified batch has its ledger effect
        reversed.

        Raises:
            IllegalTransitionError: From finalized
        """
        with self._locks.hold(batch_id):
            batch = self._store.load_batch(batch_id)
            if batch.status == BatchStatus.REJECTED:
                return batch
            if batch.status not in (BatchStatus.PENDING, BatchStatus.VERIFIED):
                raise IllegalTransitionError(batch_id, batch.status, "reject")
            return self._reject_locked(batch, reason)

    def _reject_locked(self, batch: Batch, reason: str) -> Batch:
        # A pending batch may still carry a settlement record if a verify
        # crashed after the ledger commit, so always ask the ledger.
        self._ledger.reverse_batch(batch)
        rejected = dataclasses.replace(
            batch,
            status=BatchStatus.REJECTED,
            rejection_reason=reason,
        )
        self._store.save_batch(rejected)
        logger.warning("Batch %s rejected: %s", batch.batch_id, reason)
        return rejected

    def _raise_if_reversed(self, batch: Batch, attempted: str) -> None:
        """
        Finish a rejection whose ledger reversal committed but whose status
        write did not, then refuse ``attempted``. A reversed settlement is
        never finalized or verified again.
        """
        if batch.status not in (BatchStatus.PENDING, BatchStatus.VERIFIED):
            return
        record = self._ledger.settlement(batch.batch_id)
        if record is None or not record.is_reversed:
            return
        logger.warning(
            "Batch %s has a reversed settlement but status %s; completing rejection",
            batch.batch_id,
            batch.status.value,
        )
        rejected = self._reject_locked(batch, "settlement reversed before rejection was recorded")
        if attempted == "challenge":
            raise ChallengeWindowClosedError(f"batch {batch.batch_id} is rejected")
        raise IllegalTransitionError(batch.batch_id, rejected.status, attempted)

    def _require_open_window(self, batch: Batch) -> None:
        if batch.status != BatchStatus.VERIFIED:
            raise ChallengeWindowClosedError(
                f"batch {batch.batch_id} is {batch.status.value}; only verified batches can be challenged"
            )
        if self._clock() >= batch.challenge_deadline:
            raise ChallengeWindowClosedError(
                f"challenge window for batch {batch.batch_id} closed at "
                f"{to_iso(batch.challenge_deadline)}"
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, batch_id: str) -> Batch:
        return self._store.load_batch(batch_id)

    def list_batches(self, status: Optional[BatchStatus] = None) -> List[Batch]:
        return self._store.list_batches(status)

    def proof(self, batch_id: str, index: int) -> List[Digest]:
        """Inclusion proof for the transaction at ``index`` of a stored batch."""
        batch = self._store.load_batch(batch_id)
        return CommitmentTree.build(batch.transactions).proof(index)

    def transactions_for(self, address: str) -> List[Tuple[Batch, int, Transaction]]:
        """Every (batch, index, transaction) where ``address`` sends or receives."""
        address = normalize_address(address)
        history: List[Tuple[Batch, int, Transaction]] = []
        for batch in self._store.list_batches():
            if not batch.involves(address):
                continue
            for index, tx in enumerate(batch.transactions):
                if tx.sender == address or tx.recipient == address:
                    history.append((batch, index, tx))
        return history
