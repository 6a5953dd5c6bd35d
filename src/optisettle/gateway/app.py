"""
HTTP gateway.

Thin adapter over the settlement engine: parses and validates requests,
checks operator capability, calls the core, and maps typed errors to JSON
responses of the form ``{"error": <code>, "message": <text>}``.

Routes:
    POST /transactions                      queue a transaction
    GET  /transactions/pending              pending pool
    GET  /transactions/{address}            history across batches
    POST /batches                           create a batch (operator)
    GET  /batches                           list batches
    GET  /batches/{batch_id}                batch by id
    GET  /batches/{batch_id}/proof/{index}  inclusion proof
    POST /batches/{batch_id}/verify         (operator)
    POST /batches/{batch_id}/finalize       (operator)
    POST /batches/{batch_id}/reject         (operator)
    POST /batches/{batch_id}/challenge      fraud challenge (untrusted callers)
    POST /settlement/events                 primary-layer event (operator)
    GET  /balances/{address}                balance lookup
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from optisettle import __version__
from optisettle.engine import SettlementEngine
from optisettle.merkle.tree import CommitmentTree
from optisettle.protocol.enums import BatchStatus, ErrorCode
from optisettle.protocol.errors import (
    ChallengeWindowClosedError,
    InvalidProofError,
    SettlementError,
    UnauthorizedError,
    ValidationError,
)
from optisettle.protocol.models import ChallengeOutcome, normalize_address
from optisettle.settlement.events import SettlementEvent

from .auth import Authorizer, StaticOperatorSet
from .schemas import (
    ChallengeRequest,
    CreateBatchRequest,
    RejectRequest,
    SettlementEventIn,
    TransactionIn,
)

logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.EMPTY_INPUT: 400,
    ErrorCode.EMPTY_BATCH: 400,
    ErrorCode.INDEX_OUT_OF_RANGE: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.BATCH_NOT_FOUND: 404,
    ErrorCode.INSUFFICIENT_BALANCE: 409,
    ErrorCode.INVALID_PROOF: 409,
    ErrorCode.CHALLENGE_WINDOW_CLOSED: 409,
    ErrorCode.CHALLENGE_WINDOW_OPEN: 409,
    ErrorCode.ILLEGAL_TRANSITION: 409,
    ErrorCode.STORE_UNAVAILABLE: 503,
}


def error_response(exc: SettlementError) -> JSONResponse:
    status = _STATUS_BY_CODE.get(exc.code, 500)
    return JSONResponse(
        status_code=status,
        content={"error": exc.code.value, "message": exc.message},
    )


def create_app(
    engine: SettlementEngine,
    authorizer: Optional[Authorizer] = None,
) -> FastAPI:
    authorizer = authorizer or StaticOperatorSet([])
    app = FastAPI(title="optisettle gateway", version=__version__)
    app.state.engine = engine

    @app.exception_handler(SettlementError)
    async def _settlement_error(request: Request, exc: SettlementError):
        if exc.code == ErrorCode.STORE_UNAVAILABLE:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error_response(exc)

    def require_operator(x_operator_address: Optional[str] = Header(default=None)) -> str:
        if not authorizer.is_operator(x_operator_address):
            raise UnauthorizedError("operator privileges required")
        return x_operator_address.lower()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @app.post("/transactions", status_code=202)
    def queue_transaction(body: TransactionIn):
        tx = body.to_domain()
        size = engine.pool.add(tx)
        return {"transaction": tx.to_dict(), "pending": size}

    @app.get("/transactions/pending")
    def pending_transactions():
        return {"transactions": [tx.to_dict() for tx in engine.pool.pending()]}

    @app.get("/transactions/{address}")
    def transaction_history(address: str):
        history = engine.lifecycle.transactions_for(address)
        return {
            "address": normalize_address(address),
            "transactions": [
                {
                    **tx.to_dict(),
                    "batchId": batch.batch_id,
                    "index": index,
                    "status": batch.status.value,
                }
                for batch, index, tx in history
            ],
        }

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    @app.post("/batches", status_code=201)
    def create_batch(body: CreateBatchRequest, operator: str = Depends(require_operator)):
        if body.from_pool:
            batch = engine.lifecycle.submit_from_pool(engine.pool, body.limit)
        else:
            batch = engine.lifecycle.submit([tx.to_domain() for tx in body.transactions])
        logger.info("Operator %s created batch %s", operator, batch.batch_id)
        response = {"batch": batch.to_dict()}
        if engine.anchorer is not None:
            # The batch is already stored; a sink failure leaves "anchor" null.
            try:
                response["anchor"] = engine.anchorer.publish(batch).to_dict()
            except Exception:
                logger.exception("Anchoring batch %s failed", batch.batch_id)
                response["anchor"] = None
        return response

    @app.get("/batches")
    def list_batches(status: Optional[str] = None):
        status_filter = None
        if status is not None:
            try:
                status_filter = BatchStatus(status.lower())
            except ValueError:
                raise ValidationError(f"unknown batch status: {status}")
        return {"batches": [b.to_dict() for b in engine.lifecycle.list_batches(status_filter)]}

    @app.get("/batches/{batch_id}")
    def get_batch(batch_id: str):
        return {"batch": engine.lifecycle.get(batch_id).to_dict()}

    @app.get("/batches/{batch_id}/proof/{index}")
    def get_proof(batch_id: str, index: int):
        batch = engine.lifecycle.get(batch_id)
        tree = CommitmentTree.build(batch.transactions)
        proof = tree.proof(index)
        return {
            "batchId": batch_id,
            "index": index,
            "transaction": batch.transactions[index].to_dict(),
            "leaf": tree.leaf(index),
            "proof": proof,
            "root": batch.transactions_root,
        }

    @app.post("/batches/{batch_id}/verify")
    def verify_batch(batch_id: str, operator: str = Depends(require_operator)):
        return {"batch": engine.lifecycle.verify(batch_id).to_dict()}

    @app.post("/batches/{batch_id}/finalize")
    def finalize_batch(batch_id: str, operator: str = Depends(require_operator)):
        return {"batch": engine.lifecycle.finalize(batch_id).to_dict()}

    @app.post("/batches/{batch_id}/reject")
    def reject_batch(batch_id: str, body: RejectRequest, operator: str = Depends(require_operator)):
        logger.info("Operator %s rejecting batch %s", operator, batch_id)
        return {"batch": engine.lifecycle.reject(batch_id, body.reason).to_dict()}

    @app.post("/batches/{batch_id}/challenge")
    def challenge_batch(batch_id: str, body: ChallengeRequest):
        try:
            batch = engine.lifecycle.challenge(
                batch_id,
                body.disputed_transaction.to_domain(),
                body.merkle_proof,
            )
        except (InvalidProofError, ChallengeWindowClosedError) as e:
            outcome = ChallengeOutcome(batch_id, accepted=False, reason=e.message, code=e.code.value)
            return outcome.to_dict()
        outcome = ChallengeOutcome(batch_id, accepted=True, reason=batch.rejection_reason)
        return {**outcome.to_dict(), "batch": batch.to_dict()}

    # ------------------------------------------------------------------
    # Settlement layer and balances
    # ------------------------------------------------------------------

    @app.post("/settlement/events")
    def settlement_event(body: SettlementEventIn, operator: str = Depends(require_operator)):
        event = SettlementEvent.from_dict(body.model_dump())
        return engine.events.handle(event)

    @app.get("/balances/{address}")
    def get_balance(address: str):
        address = normalize_address(address)
        return {"address": address, "balance": str(engine.ledger.balance(address))}

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__, "pending": len(engine.pool)}

    return app
