from typing import Optional

from .enums import BatchStatus, ErrorCode


class SettlementError(Exception):
    """Base class for every error raised by the settlement engine."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class EmptyInputError(SettlementError):
    """Raised when a commitment tree is built over no transactions."""

    code = ErrorCode.EMPTY_INPUT


class IndexOutOfRangeError(SettlementError):
    """Raised when a proof is requested for a leaf the tree does not have."""

    code = ErrorCode.INDEX_OUT_OF_RANGE


class EmptyBatchError(SettlementError):
    """Raised when a batch is requested with no transactions."""

    code = ErrorCode.EMPTY_BATCH


class InsufficientBalanceError(SettlementError):
    code = ErrorCode.INSUFFICIENT_BALANCE

    def __init__(self, address: str, required, available):
        super().__init__(
            f"insufficient balance for {address}: required {required}, available {available}"
        )
        self.address = address
        self.required = required
        self.available = available


class InvalidProofError(SettlementError):
    """Raised when a challenge fails to demonstrate fraud."""

    code = ErrorCode.INVALID_PROOF


class ChallengeWindowClosedError(SettlementError):
    code = ErrorCode.CHALLENGE_WINDOW_CLOSED


class ChallengeWindowOpenError(SettlementError):
    code = ErrorCode.CHALLENGE_WINDOW_OPEN


class StoreUnavailableError(SettlementError):
    """Raised when the persistent store fails or times out. Callers may retry."""

    code = ErrorCode.STORE_UNAVAILABLE


class IllegalTransitionError(SettlementError):
    code = ErrorCode.ILLEGAL_TRANSITION

    def __init__(self, batch_id: str, current: BatchStatus, attempted: str):
        super().__init__(
            f"cannot {attempted} batch {batch_id} in state {current.value}"
        )
        self.batch_id = batch_id
        self.current = current
        self.attempted = attempted


class BatchNotFoundError(SettlementError):
    code = ErrorCode.BATCH_NOT_FOUND

    def __init__(self, batch_id: str):
        super().__init__(f"batch not found: {batch_id}")
        self.batch_id = batch_id


class ValidationError(SettlementError):
    """Raised when an input fails validation."""

    code = ErrorCode.VALIDATION_ERROR


class UnauthorizedError(SettlementError):
    code = ErrorCode.UNAUTHORIZED
