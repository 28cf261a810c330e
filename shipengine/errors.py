"""Error taxonomy for ShipEngine calls."""

from enum import Enum
from typing import Optional, Dict, Any, List


class ErrorSource(str, Enum):
    """Where an error originated."""

    CLIENT = "client"  # Raised locally, before or around dispatch
    SHIPENGINE = "shipengine"
    CARRIER = "carrier"


class ErrorType(str, Enum):
    """Broad category of an error."""

    ACCOUNT_STATUS = "account_status"
    BUSINESS_RULES = "business_rules"
    SECURITY = "security"
    SYSTEM = "system"
    VALIDATION = "validation"
    UNSPECIFIED = "unspecified"


class ErrorCode(str, Enum):
    """Stable machine-readable error codes."""

    AUTO_FUND_NOT_SUPPORTED = "auto_fund_not_supported"
    BATCH_CANNOT_BE_MODIFIED = "batch_cannot_be_modified"
    CANCELLED = "cancelled"
    CARRIER_CONFLICT = "carrier_conflict"
    CARRIER_NOT_CONNECTED = "carrier_not_connected"
    CARRIER_NOT_SUPPORTED = "carrier_not_supported"
    CONFIRMATION_NOT_SUPPORTED = "confirmation_not_supported"
    FIELD_CONFLICT = "field_conflict"
    FIELD_VALUE_REQUIRED = "field_value_required"
    FORBIDDEN = "forbidden"
    IDENTIFIER_CONFLICT = "identifier_conflict"
    IDENTIFIERS_MUST_MATCH = "identifiers_must_match"
    INVALID_FIELD_VALUE = "invalid_field_value"
    INVALID_IDENTIFIER = "invalid_identifier"
    INVALID_STATUS = "invalid_status"
    INVALID_STRING_LENGTH = "invalid_string_length"
    LABEL_IMAGES_NOT_SUPPORTED = "label_images_not_supported"
    METER_FAILURE = "meter_failure"
    NOT_FOUND = "not_found"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    REQUEST_BODY_REQUIRED = "request_body_required"
    RETURN_LABEL_NOT_SUPPORTED = "return_label_not_supported"
    SUBSCRIPTION_INACTIVE = "subscription_inactive"
    TERMS_NOT_ACCEPTED = "terms_not_accepted"
    TIMEOUT = "timeout"
    TRACKING_NOT_SUPPORTED = "tracking_not_supported"
    TRIAL_EXPIRED = "trial_expired"
    UNAUTHORIZED = "unauthorized"
    UNSPECIFIED = "unspecified"
    VERIFICATION_FAILURE = "verification_failure"
    WAREHOUSE_CONFLICT = "warehouse_conflict"
    WEBHOOK_EVENT_TYPE_CONFLICT = "webhook_event_type_conflict"


RATE_LIMIT_DOCS_URL = "https://www.shipengine.com/docs/rate-limits"


class ShipEngineError(Exception):
    """
    Base exception for every failure a ShipEngine call can raise.

    Two errors are equal when their flat shapes (see ``to_dict``) and
    classes match, so classifying the same outcome twice gives equal values.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        source: ErrorSource,
        error_type: ErrorType,
        error_code: ErrorCode,
        request_id: Optional[str] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.error_type = error_type
        self.error_code = error_code
        self.request_id = request_id
        self.url = url
        # Exceptions raised by event listeners during the failed call
        self.listener_errors: List[BaseException] = []

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the flat error structure."""
        return {
            "requestId": self.request_id,
            "source": self.source.value,
            "type": self.error_type.value,
            "errorCode": self.error_code.value,
            "message": self.message,
            "url": self.url,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ShipEngineError):
            return NotImplemented
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((type(self), tuple(self.to_dict().items())))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, request_id={self.request_id!r})"
        )


class ValidationError(ShipEngineError):
    """Raised when caller-supplied data is malformed. Never retried."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INVALID_FIELD_VALUE,
        source: ErrorSource = ErrorSource.CLIENT,
        request_id: Optional[str] = None,
        url: Optional[str] = None,
    ):
        super().__init__(
            message,
            source=source,
            error_type=ErrorType.VALIDATION,
            error_code=error_code,
            request_id=request_id,
            url=url,
        )


class RateLimitExceededError(ShipEngineError):
    """Raised when ShipEngine rejects a request for exceeding the rate limit."""

    retryable = True

    def __init__(
        self,
        request_id: Optional[str] = None,
        source: ErrorSource = ErrorSource.SHIPENGINE,
        retry_after: Optional[float] = None,
    ):
        super().__init__(
            "You have exceeded the rate limit.",
            source=source,
            error_type=ErrorType.SYSTEM,
            error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
            request_id=request_id,
            url=RATE_LIMIT_DOCS_URL,
        )
        self.retry_after = retry_after


class ClientTimeoutError(ShipEngineError):
    """Raised when an attempt does not complete within the configured timeout."""

    def __init__(self, timeout_seconds: float, request_id: Optional[str] = None):
        super().__init__(
            f"The request took longer than the {timeout_seconds:g} seconds allowed.",
            source=ErrorSource.CLIENT,
            error_type=ErrorType.SYSTEM,
            error_code=ErrorCode.TIMEOUT,
            request_id=request_id,
        )
        self.timeout_seconds = timeout_seconds


class ClientSystemError(ShipEngineError):
    """Raised for local failures such as DNS or connection errors."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.UNSPECIFIED,
    ):
        super().__init__(
            message,
            source=ErrorSource.CLIENT,
            error_type=ErrorType.SYSTEM,
            error_code=error_code,
            request_id=request_id,
        )


class CancelledRequestError(ShipEngineError):
    """Raised when a call is cancelled before it could complete."""

    def __init__(self, request_id: Optional[str] = None):
        super().__init__(
            "The request was cancelled.",
            source=ErrorSource.CLIENT,
            error_type=ErrorType.SYSTEM,
            error_code=ErrorCode.CANCELLED,
            request_id=request_id,
        )


class EventListenerError(ShipEngineError):
    """
    Raised after a successful call when one or more event listeners failed.

    The first listener exception is chained as ``__cause__``; all of them are
    available on ``errors``.
    """

    def __init__(self, errors: List[BaseException], request_id: Optional[str] = None):
        super().__init__(
            f"{len(errors)} event listener call(s) raised an exception.",
            source=ErrorSource.CLIENT,
            error_type=ErrorType.SYSTEM,
            error_code=ErrorCode.UNSPECIFIED,
            request_id=request_id,
        )
        self.errors = errors


def parse_enum(enum_cls: Any, value: Any, default: Any) -> Any:
    """Look up an enum member by value, falling back to ``default``."""
    try:
        return enum_cls(value)
    except ValueError:
        return default
