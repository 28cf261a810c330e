"""
Tests for shipengine/classify.py and the error taxonomy in shipengine/errors.py.
"""

import pytest

from shipengine import (
    AttemptOutcome,
    classify,
    ShipEngineError,
    ValidationError,
    RateLimitExceededError,
    ClientTimeoutError,
    ClientSystemError,
    CancelledRequestError,
    EventListenerError,
    ErrorSource,
    ErrorType,
    ErrorCode,
    TransportResponse,
    TransportTimeout,
    TransportFailure,
)
from shipengine.classify import parse_result

from conftest import RATE_LIMIT_BODY


def outcome(response=None, error=None, request_id="req_attempt"):
    return AttemptOutcome(
        request_id=request_id,
        timeout_seconds=15.0,
        response=response,
        error=error,
    )


def envelope_error(source, error_type, code, message="Something went wrong.", **data):
    return {
        "jsonrpc": "2.0",
        "id": "req_remote",
        "error": {
            "code": -32600,
            "message": message,
            "data": {"source": source, "type": error_type, "code": code, **data},
        },
    }


# ============================================================================
# Success
# ============================================================================


def test_success_classifies_as_none():
    result = outcome(TransportResponse(200, body={"jsonrpc": "2.0", "id": "x", "result": [1]}))
    assert classify(result) is None
    assert parse_result(result) == [1]


def test_null_result_is_still_success():
    result = outcome(TransportResponse(200, body={"jsonrpc": "2.0", "id": "x", "result": None}))
    assert classify(result) is None
    assert parse_result(result) is None


def test_success_without_result_is_an_error():
    error = classify(outcome(TransportResponse(200, body={"jsonrpc": "2.0", "id": "x"})))
    assert error.error_type is ErrorType.SYSTEM
    assert error.error_code is ErrorCode.UNSPECIFIED
    assert error.request_id == "x"


# ============================================================================
# Rate limiting
# ============================================================================


def test_rate_limit_status():
    error = classify(outcome(TransportResponse(429, body=RATE_LIMIT_BODY)))
    assert isinstance(error, RateLimitExceededError)
    assert error.retryable
    assert error.to_dict() == {
        "requestId": "req_ratelimited",
        "source": "shipengine",
        "type": "system",
        "errorCode": "rate_limit_exceeded",
        "message": "You have exceeded the rate limit.",
        "url": "https://www.shipengine.com/docs/rate-limits",
    }
    assert error.retry_after == 1.0


def test_rate_limit_without_body_uses_attempt_request_id():
    error = classify(outcome(TransportResponse(429, headers={"retry-after": "3"}, body="slow down")))
    assert isinstance(error, RateLimitExceededError)
    assert error.request_id == "req_attempt"
    assert error.retry_after == 3.0


def test_rate_limit_code_inside_envelope():
    body = envelope_error("shipengine", "system", "rate_limit_exceeded")
    error = classify(outcome(TransportResponse(200, body=body)))
    assert isinstance(error, RateLimitExceededError)
    assert error.request_id == "req_remote"


# ============================================================================
# Remote errors
# ============================================================================


def test_remote_validation_error():
    body = envelope_error(
        "shipengine", "validation", "invalid_field_value", "Invalid postal code."
    )
    error = classify(outcome(TransportResponse(400, body=body)))
    assert isinstance(error, ValidationError)
    assert not error.retryable
    assert error.source is ErrorSource.SHIPENGINE
    assert error.error_code is ErrorCode.INVALID_FIELD_VALUE
    assert error.message == "Invalid postal code."
    assert error.request_id == "req_remote"


def test_carrier_business_rules_error():
    body = envelope_error(
        "carrier", "business_rules", "carrier_not_supported", url="https://example.com/docs"
    )
    error = classify(outcome(TransportResponse(400, body=body)))
    assert type(error) is ShipEngineError
    assert error.source is ErrorSource.CARRIER
    assert error.error_type is ErrorType.BUSINESS_RULES
    assert error.error_code is ErrorCode.CARRIER_NOT_SUPPORTED
    assert error.url == "https://example.com/docs"


def test_unknown_envelope_values_fall_back():
    body = envelope_error("mars", "weird", "brand_new_code")
    error = classify(outcome(TransportResponse(500, body=body)))
    assert error.source is ErrorSource.SHIPENGINE
    assert error.error_type is ErrorType.UNSPECIFIED
    assert error.error_code is ErrorCode.UNSPECIFIED
    assert not error.retryable


@pytest.mark.parametrize(
    "status,error_type,error_code",
    [
        (401, ErrorType.SECURITY, ErrorCode.UNAUTHORIZED),
        (403, ErrorType.SECURITY, ErrorCode.FORBIDDEN),
        (404, ErrorType.VALIDATION, ErrorCode.NOT_FOUND),
        (500, ErrorType.SYSTEM, ErrorCode.UNSPECIFIED),
        (503, ErrorType.SYSTEM, ErrorCode.UNSPECIFIED),
    ],
)
def test_status_without_envelope(status, error_type, error_code):
    error = classify(outcome(TransportResponse(status, body="<html>oops</html>")))
    assert error.source is ErrorSource.SHIPENGINE
    assert error.error_type is error_type
    assert error.error_code is error_code
    assert error.request_id == "req_attempt"
    assert not error.retryable


# ============================================================================
# Transport failures
# ============================================================================


def test_transport_timeout():
    error = classify(outcome(error=TransportTimeout("read timed out")))
    assert isinstance(error, ClientTimeoutError)
    assert error.source is ErrorSource.CLIENT
    assert error.error_code is ErrorCode.TIMEOUT
    assert error.message == "The request took longer than the 15 seconds allowed."
    assert error.request_id == "req_attempt"
    assert not error.retryable


def test_transport_failure():
    error = classify(outcome(error=TransportFailure("Name or service not known")))
    assert isinstance(error, ClientSystemError)
    assert error.error_type is ErrorType.SYSTEM
    assert "Name or service not known" in error.message
    assert error.request_id == "req_attempt"
    assert not error.retryable


# ============================================================================
# Determinism and the error shape
# ============================================================================


@pytest.mark.parametrize(
    "raw",
    [
        outcome(TransportResponse(429, body=RATE_LIMIT_BODY)),
        outcome(TransportResponse(400, body=envelope_error("shipengine", "validation", "field_value_required"))),
        outcome(TransportResponse(502, body=None)),
        outcome(error=TransportTimeout("timed out")),
    ],
)
def test_classify_is_idempotent(raw):
    first = classify(raw)
    second = classify(raw)
    assert first is not second
    assert first == second
    assert hash(first) == hash(second)


def test_errors_of_different_classes_are_not_equal():
    validation = ValidationError("Bad.", source=ErrorSource.SHIPENGINE)
    generic = ShipEngineError(
        "Bad.", ErrorSource.SHIPENGINE, ErrorType.VALIDATION, ErrorCode.INVALID_FIELD_VALUE
    )
    assert validation != generic


def test_to_dict_serializes_missing_fields_as_none():
    error = CancelledRequestError()
    assert error.to_dict() == {
        "requestId": None,
        "source": "client",
        "type": "system",
        "errorCode": "cancelled",
        "message": "The request was cancelled.",
        "url": None,
    }


def test_event_listener_error_keeps_all_errors():
    causes = [RuntimeError("one"), ValueError("two")]
    error = EventListenerError(causes)
    assert error.errors == causes
    assert error.message == "2 event listener call(s) raised an exception."
    assert error.error_code is ErrorCode.UNSPECIFIED


def test_only_rate_limit_errors_are_retryable():
    assert RateLimitExceededError().retryable
    assert not ValidationError("x").retryable
    assert not ClientTimeoutError(5).retryable
    assert not ClientSystemError("x").retryable
    assert not CancelledRequestError().retryable
