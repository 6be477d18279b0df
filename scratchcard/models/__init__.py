from scratchcard.models.card import Card, CardState, HistoryEntry, utc_now
from scratchcard.models.failure import (
    GENERIC_ACTIVATION_MESSAGE,
    ActivationError,
    ActivationInProgressError,
    ApiResponse,
    CardAlreadyActivatedError,
    FailureDetail,
    FailureKind,
    InvalidResponseError,
    MissingCodeError,
    OutcomeType,
    ThresholdNotMetError,
    TransportError,
)

__all__ = [
    "GENERIC_ACTIVATION_MESSAGE",
    "ActivationError",
    "ActivationInProgressError",
    "ApiResponse",
    "Card",
    "CardAlreadyActivatedError",
    "CardState",
    "FailureDetail",
    "FailureKind",
    "HistoryEntry",
    "InvalidResponseError",
    "MissingCodeError",
    "OutcomeType",
    "ThresholdNotMetError",
    "TransportError",
    "utc_now",
]
