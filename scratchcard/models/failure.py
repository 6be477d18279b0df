"""
Activation failures and the response envelope.

Every activation failure is a typed exception carrying a FailureKind and a
user-appropriate message. The lifecycle never lets these escape: it
surfaces the message and hands the exception back in its result.

The kinds are distinct for callers and tests. The user-facing text is
deliberately collapsed: transport problems and malformed responses share
the same message and differ only in `detail`.

Response types used by the HTTP layer:
- Success: Operation completed successfully
- KnownFailure: System knows why it failed
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

GENERIC_ACTIVATION_MESSAGE = "Activation failed."


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Lifecycle state violations
    MISSING_CODE = "missing_code"
    ALREADY_ACTIVATED = "already_activated"
    ACTIVATION_IN_PROGRESS = "activation_in_progress"

    # Verifier failures
    TRANSPORT_ERROR = "transport_error"
    INVALID_RESPONSE = "invalid_response"
    THRESHOLD_NOT_MET = "threshold_not_met"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    KNOWN_FAILURE = "known_failure"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope for lifecycle operations exposed over HTTP."""

    outcome: OutcomeType
    data: T | None = None
    failure: FailureDetail | None = None

    @classmethod
    def success(cls, data: T) -> "ApiResponse[T]":
        return cls(outcome=OutcomeType.SUCCESS, data=data)

    @classmethod
    def known_failure(cls, error: "ActivationError", data: T | None = None) -> "ApiResponse[T]":
        """Wrap an activation failure, optionally with the unchanged state."""
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            data=data,
            failure=FailureDetail(kind=error.kind, message=error.message, detail=error.detail),
        )


class ActivationError(Exception):
    """
    Base class for every way an activation can fail.

    None of these are fatal. The lifecycle recovers them locally and only
    surfaces `message` to the user.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_response(self, data: Any = None) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(self, data=data)


class MissingCodeError(ActivationError):
    """Activation requested before the card was scratched."""

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.MISSING_CODE,
            message="Activation failed: missing code.",
        )


class CardAlreadyActivatedError(ActivationError):
    """Activation requested on a card that is already activated."""

    def __init__(self, code: str | None = None) -> None:
        super().__init__(
            kind=FailureKind.ALREADY_ACTIVATED,
            message="Card is already activated.",
            detail=f"code={code}" if code else None,
        )


class ActivationInProgressError(ActivationError):
    """A second activation was requested while one is still outstanding."""

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.ACTIVATION_IN_PROGRESS,
            message="Activation is already in progress.",
        )


class TransportError(ActivationError):
    """The verification request failed without a response."""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(
            kind=FailureKind.TRANSPORT_ERROR,
            message=GENERIC_ACTIVATION_MESSAGE,
            detail=detail,
        )


class InvalidResponseError(ActivationError):
    """
    The verification endpoint answered, but not with a usable version.

    Covers non-2xx statuses, unparseable bodies and an absent or
    non-integer version field.
    """

    def __init__(self, detail: str | None = None, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(
            kind=FailureKind.INVALID_RESPONSE,
            message=GENERIC_ACTIVATION_MESSAGE,
            detail=detail,
        )


class ThresholdNotMetError(ActivationError):
    """The version was parsed but does not exceed the activation threshold."""

    def __init__(self, version: int, threshold: int) -> None:
        self.version = version
        self.threshold = threshold
        super().__init__(
            kind=FailureKind.THRESHOLD_NOT_MET,
            message=f"Activation failed (version = {version}).",
            detail=f"version {version} <= threshold {threshold}",
        )
