from .enums import BatchStatus, ErrorCode, SettlementEventKind
from .errors import (
    SettlementError,
    EmptyInputError,
    IndexOutOfRangeError,
    EmptyBatchError,
    InsufficientBalanceError,
    InvalidProofError,
    ChallengeWindowClosedError,
    ChallengeWindowOpenError,
    StoreUnavailableError,
    IllegalTransitionError,
    BatchNotFoundError,
    ValidationError,
    UnauthorizedError,
)
from .models import (
    Transaction,
    Batch,
    SettlementRecord,
    ChallengeOutcome,
    parse_amount,
    canonical_amount,
    normalize_address,
)

__all__ = [
    "BatchStatus",
    "ErrorCode",
    "SettlementEventKind",
    "SettlementError",
    "EmptyInputError",
    "IndexOutOfRangeError",
    "EmptyBatchError",
    "InsufficientBalanceError",
    "InvalidProofError",
    "ChallengeWindowClosedError",
    "ChallengeWindowOpenError",
    "StoreUnavailableError",
    "IllegalTransitionError",
    "BatchNotFoundError",
    "ValidationError",
    "UnauthorizedError",
    "Transaction",
    "Batch",
    "SettlementRecord",
    "ChallengeOutcome",
    "parse_amount",
    "canonical_amount",
    "normalize_address",
]
