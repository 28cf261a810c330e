"""Map raw attempt outcomes onto the ShipEngine error taxonomy."""

from dataclasses import dataclass
from typing import Optional, Any, Dict

from .errors import (
    ShipEngineError,
    ValidationError,
    RateLimitExceededError,
    ClientTimeoutError,
    ClientSystemError,
    ErrorSource,
    ErrorType,
    ErrorCode,
    parse_enum,
)
from .transport import TransportResponse, TransportError, TransportTimeout

RATE_LIMIT_STATUS = 429

# Used when the response carries no JSON-RPC error envelope
_STATUS_FALLBACKS = {
    401: (ErrorType.SECURITY, ErrorCode.UNAUTHORIZED),
    403: (ErrorType.SECURITY, ErrorCode.FORBIDDEN),
    404: (ErrorType.VALIDATION, ErrorCode.NOT_FOUND),
}


@dataclass(frozen=True)
class AttemptOutcome:
    """What one attempt produced: an HTTP response or a transport failure."""

    request_id: str
    timeout_seconds: float
    response: Optional[TransportResponse] = None
    error: Optional[TransportError] = None


def classify(outcome: AttemptOutcome) -> Optional[ShipEngineError]:
    """
    Return the error an outcome represents, or None when it is a success.

    Pure function of ``outcome``; it never raises.
    """
    if outcome.error is not None:
        if isinstance(outcome.error, TransportTimeout):
            return ClientTimeoutError(outcome.timeout_seconds, request_id=outcome.request_id)
        return ClientSystemError(
            f"Unable to reach ShipEngine: {outcome.error}",
            request_id=outcome.request_id,
        )

    response = outcome.response
    if response is None:
        return ClientSystemError("No response was received.", request_id=outcome.request_id)

    body = response.body if isinstance(response.body, dict) else None
    request_id = _response_request_id(body, outcome.request_id)

    if response.status_code == RATE_LIMIT_STATUS:
        return RateLimitExceededError(
            request_id=request_id,
            retry_after=_retry_after(body, response.headers),
        )

    if body is not None and isinstance(body.get("error"), dict):
        return _from_envelope(body["error"], request_id, response)

    if not response.is_success:
        error_type, error_code = _STATUS_FALLBACKS.get(
            response.status_code, (ErrorType.SYSTEM, ErrorCode.UNSPECIFIED)
        )
        return ShipEngineError(
            f"ShipEngine returned an unexpected HTTP {response.status_code} response.",
            source=ErrorSource.SHIPENGINE,
            error_type=error_type,
            error_code=error_code,
            request_id=request_id,
        )

    if body is None or "result" not in body:
        return ShipEngineError(
            "ShipEngine returned a response without a result.",
            source=ErrorSource.SHIPENGINE,
            error_type=ErrorType.SYSTEM,
            error_code=ErrorCode.UNSPECIFIED,
            request_id=request_id,
        )

    return None


def parse_result(outcome: AttemptOutcome) -> Any:
    """Extract the JSON-RPC result from an outcome that ``classify`` accepted."""
    return outcome.response.body["result"]


def _from_envelope(
    error: Dict[str, Any], request_id: str, response: TransportResponse
) -> ShipEngineError:
    data = error.get("data") if isinstance(error.get("data"), dict) else {}
    source = parse_enum(ErrorSource, data.get("source"), ErrorSource.SHIPENGINE)
    error_type = parse_enum(ErrorType, data.get("type"), ErrorType.UNSPECIFIED)
    error_code = parse_enum(ErrorCode, data.get("code"), ErrorCode.UNSPECIFIED)
    message = error.get("message") or "ShipEngine reported an unspecified error."
    url = data.get("url")

    if error_code is ErrorCode.RATE_LIMIT_EXCEEDED:
        return RateLimitExceededError(
            request_id=request_id,
            source=source,
            retry_after=_retry_after({"error": error}, response.headers),
        )
    if error_type is ErrorType.VALIDATION:
        return ValidationError(
            message, error_code=error_code, source=source, request_id=request_id, url=url
        )
    return ShipEngineError(
        message,
        source=source,
        error_type=error_type,
        error_code=error_code,
        request_id=request_id,
        url=url,
    )


def _response_request_id(body: Optional[Dict[str, Any]], fallback: str) -> str:
    if body is not None:
        remote_id = body.get("id")
        if isinstance(remote_id, str) and remote_id:
            return remote_id
    return fallback


def _retry_after(body: Optional[Dict[str, Any]], headers: Dict[str, str]) -> Optional[float]:
    """Retry-after hint in seconds, from the error envelope or the header."""
    candidates = []
    if body is not None and isinstance(body.get("error"), dict):
        data = body["error"].get("data")
        if isinstance(data, dict):
            candidates.append(data.get("retryAfter"))
    candidates.append(headers.get("retry-after"))

    for value in candidates:
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None
