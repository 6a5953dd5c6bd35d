from enum import Enum


class ErrorCode(str, Enum):
    EMPTY_INPUT = "empty_input"
    INDEX_OUT_OF_RANGE = "index_out_of_range"
    EMPTY_BATCH = "empty_batch"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INVALID_PROOF = "invalid_proof"
    CHALLENGE_WINDOW_CLOSED = "challenge_window_closed"
    CHALLENGE_WINDOW_OPEN = "challenge_window_open"
    STORE_UNAVAILABLE = "store_unavailable"
    ILLEGAL_TRANSITION = "illegal_transition"
    BATCH_NOT_FOUND = "batch_not_found"
    VALIDATION_ERROR = "validation_error"
    UNAUTHORIZED = "unauthorized"
    INTERNAL_ERROR = "internal_error"


class BatchStatus(str, Enum):
    """Batch lifecycle status. FINALIZED and REJECTED are terminal."""

    PENDING = "pending"
    VERIFIED = "verified"
    FINALIZED = "finalized"
    REJECTED = "rejected"


class SettlementEventKind(str, Enum):
    """Events emitted by the primary settlement layer."""

    BATCH_VERIFIED = "BatchVerified"
    BATCH_FINALIZED = "BatchFinalized"
    FUNDS_DEPOSITED = "FundsDeposited"
    FUNDS_WITHDRAWN = "FundsWithdrawn"
