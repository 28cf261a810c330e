"""Request/response lifecycle events and the channel that delivers them."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable

from .errors import ShipEngineError

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Kinds of lifecycle events."""

    REQUEST_SENT = "request_sent"
    RESPONSE_RECEIVED = "response_received"


@dataclass(frozen=True)
class RequestSentEvent:
    """Emitted right before an attempt is dispatched."""

    request_id: str
    retry: int  # 0 for the first attempt
    url: str
    method: str
    headers: Dict[str, str]
    body: Dict[str, Any]
    timeout: timedelta
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    type: EventType = EventType.REQUEST_SENT

    @property
    def message(self) -> str:
        return f"Calling the ShipEngine {self.method} API at {self.url}"


@dataclass(frozen=True)
class ResponseReceivedEvent:
    """Emitted once an attempt has an outcome, successful or not."""

    request_id: str
    retry: int
    url: str
    method: str
    elapsed: timedelta
    status_code: Optional[int] = None  # None when no HTTP response arrived
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Any] = None
    error: Optional[ShipEngineError] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    type: EventType = EventType.RESPONSE_RECEIVED

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.status_code is None:
            return f"No response received from the ShipEngine {self.method} API"
        return f"Received an HTTP {self.status_code} response from the ShipEngine {self.method} API"


class ShipEngineEventListener:
    """
    Base class for event observers.

    Subclass and override the hooks you care about; both default to no-ops.
    """

    def on_request_sent(self, event: RequestSentEvent) -> None:
        pass

    def on_response_received(self, event: ResponseReceivedEvent) -> None:
        pass


class EventChannel:
    """
    Delivers events for one logical call to listeners in registration order.

    Listener exceptions are caught and kept on ``errors`` so they cannot
    interrupt the retry loop; the caller decides how to surface them once the
    call has finished.
    """

    def __init__(self, listeners: Iterable[Optional[ShipEngineEventListener]] = ()):
        self._listeners = [listener for listener in listeners if listener is not None]
        self.errors: List[BaseException] = []

    @property
    def listeners(self) -> List[ShipEngineEventListener]:
        return list(self._listeners)

    def notify_request_sent(
        self,
        retry: int,
        request_id: str,
        url: str,
        method: str,
        headers: Dict[str, str],
        body: Dict[str, Any],
        timeout: timedelta,
    ) -> RequestSentEvent:
        event = RequestSentEvent(
            request_id=request_id,
            retry=retry,
            url=url,
            method=method,
            headers=headers,
            body=body,
            timeout=timeout,
        )
        self._dispatch("on_request_sent", event)
        return event

    def notify_response_received(
        self,
        retry: int,
        request_id: str,
        url: str,
        method: str,
        elapsed: timedelta,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Any] = None,
        error: Optional[ShipEngineError] = None,
    ) -> ResponseReceivedEvent:
        event = ResponseReceivedEvent(
            request_id=request_id,
            retry=retry,
            url=url,
            method=method,
            elapsed=elapsed,
            status_code=status_code,
            headers=headers or {},
            body=body,
            error=error,
        )
        self._dispatch("on_response_received", event)
        return event

    def _dispatch(self, hook: str, event: Any) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, hook)(event)
            except Exception as e:
                logger.warning(
                    "Event listener %s.%s raised %s for request %s",
                    type(listener).__name__,
                    hook,
                    type(e).__name__,
                    event.request_id,
                )
                self.errors.append(e)
