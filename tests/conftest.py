"""Shared fixtures: a recording listener and a scripted transport."""

import asyncio
from typing import List, Any, Union

import pytest

from shipengine import (
    ShipEngineConfig,
    ShipEngineEventListener,
    RequestSentEvent,
    ResponseReceivedEvent,
    BackoffConfig,
    Transport,
    TransportRequest,
    TransportResponse,
    TransportError,
)

TEST_URL = "https://simengine.test/jsonrpc"

RATE_LIMIT_BODY = {
    "jsonrpc": "2.0",
    "id": "req_ratelimited",
    "error": {
        "code": -32603,
        "message": "You have exceeded the rate limit.",
        "data": {
            "source": "shipengine",
            "type": "system",
            "code": "rate_limit_exceeded",
            "url": "https://www.shipengine.com/docs/rate-limits",
            "retryAfter": 1,
        },
    },
}


class RecordingListener(ShipEngineEventListener):
    """Keeps every event it receives, in order."""

    def __init__(self) -> None:
        self.events: List[Any] = []

    @property
    def requests(self) -> List[RequestSentEvent]:
        return [e for e in self.events if isinstance(e, RequestSentEvent)]

    @property
    def responses(self) -> List[ResponseReceivedEvent]:
        return [e for e in self.events if isinstance(e, ResponseReceivedEvent)]

    def on_request_sent(self, event: RequestSentEvent) -> None:
        self.events.append(event)

    def on_response_received(self, event: ResponseReceivedEvent) -> None:
        self.events.append(event)


class ScriptedTransport(Transport):
    """Replays queued responses or transport errors; repeats the last one when exhausted."""

    def __init__(self, *outcomes: Union[TransportResponse, TransportError]):
        self.outcomes = list(outcomes)
        self.requests: List[TransportRequest] = []

    def _next(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, TransportError):
            raise outcome
        return outcome

    def send(self, request: TransportRequest) -> TransportResponse:
        return self._next(request)

    async def send_async(self, request: TransportRequest) -> TransportResponse:
        return self._next(request)


class HangingTransport(Transport):
    """Async transport whose requests never complete on their own."""

    def __init__(self) -> None:
        self.requests: List[TransportRequest] = []
        self.cancelled = False

    def send(self, request: TransportRequest) -> TransportResponse:
        raise NotImplementedError

    async def send_async(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        raise AssertionError("unreachable")


def ok(result: Any = None, request_id: str = "req_ok") -> TransportResponse:
    return TransportResponse(
        status_code=200,
        body={"jsonrpc": "2.0", "id": request_id, "result": result},
    )


def rate_limited() -> TransportResponse:
    return TransportResponse(status_code=429, body=RATE_LIMIT_BODY)


@pytest.fixture
def recorder() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def config() -> ShipEngineConfig:
    return ShipEngineConfig(
        api_key="baz",
        base_url=TEST_URL,
        page_size=75,
        retries=7,
        timeout=15,
    )


@pytest.fixture
def no_backoff() -> BackoffConfig:
    return BackoffConfig(base_delay=0.0)
