"""
shipengine - Client core for the ShipEngine JSON-RPC API.

This package provides the request-execution engine used by every endpoint:
- Validated, immutable settings with per-call overrides
- Retry of rate-limited requests with exponential backoff
- Request/response lifecycle events for observers
- A single error taxonomy (ShipEngineError) for every failure

Basic usage:
    from shipengine import ShipEngineClient

    client = ShipEngineClient("my-api-key")
    result = client.request("address/validate", [{"street": ["4 Jersey St"]}])

With configuration:
    from shipengine import ShipEngineClient, ShipEngineConfig

    config = ShipEngineConfig(api_key="my-api-key", retries=3, timeout=15)
    client = ShipEngineClient(config)
    client.request("address/validate", params, config={"retries": 0})

Observing attempts:
    from shipengine import ShipEngineEventListener

    class Printer(ShipEngineEventListener):
        def on_request_sent(self, event):
            print(event.message, event.retry)

    client.subscribe(Printer())
"""

__version__ = "0.1.0"

# Configuration
from .config import (
    ShipEngineConfig,
    ConfigOverrides,
    DEFAULT_BASE_URL,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT,
)

# Errors
from .errors import (
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
)

# Events
from .events import (
    EventType,
    RequestSentEvent,
    ResponseReceivedEvent,
    ShipEngineEventListener,
    EventChannel,
)

# Engine and transport
from .classify import AttemptOutcome, classify
from .retry import RetryEngine, BackoffConfig, RpcRequest
from .transport import (
    Transport,
    HttpxTransport,
    TransportRequest,
    TransportResponse,
    TransportError,
    TransportTimeout,
    TransportFailure,
)

# Main client
from .client import ShipEngineClient, create_client

__all__ = [
    # Version
    "__version__",
    # Main client
    "ShipEngineClient",
    "create_client",
    # Configuration
    "ShipEngineConfig",
    "ConfigOverrides",
    "DEFAULT_BASE_URL",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_RETRIES",
    "DEFAULT_TIMEOUT",
    # Errors
    "ShipEngineError",
    "ValidationError",
    "RateLimitExceededError",
    "ClientTimeoutError",
    "ClientSystemError",
    "CancelledRequestError",
    "EventListenerError",
    "ErrorSource",
    "ErrorType",
    "ErrorCode",
    # Events
    "EventType",
    "RequestSentEvent",
    "ResponseReceivedEvent",
    "ShipEngineEventListener",
    "EventChannel",
    # Engine
    "AttemptOutcome",
    "classify",
    "RetryEngine",
    "BackoffConfig",
    "RpcRequest",
    # Transport
    "Transport",
    "HttpxTransport",
    "TransportRequest",
    "TransportResponse",
    "TransportError",
    "TransportTimeout",
    "TransportFailure",
]
