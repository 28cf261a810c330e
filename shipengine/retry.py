"""Retry engine: runs one logical call as a bounded series of attempts."""

import asyncio
import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Any, Dict, Iterable

from . import __version__
from .classify import AttemptOutcome, classify, parse_result
from .config import ShipEngineConfig, redact_secret
from .errors import ShipEngineError, ValidationError, CancelledRequestError, EventListenerError
from .events import EventChannel, ShipEngineEventListener
from .transport import Transport, TransportRequest, TransportResponse, TransportError

logger = logging.getLogger(__name__)

REQUEST_ID_PREFIX = "req_"


@dataclass
class BackoffConfig:
    """Exponential backoff between retried attempts."""

    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0

    def delay_for(self, retry: int) -> float:
        """Delay after attempt ``retry`` failed; never decreases as ``retry`` grows."""
        delay = self.base_delay * (self.exponential_base ** retry)
        return max(0.0, min(delay, self.max_delay))


@dataclass(frozen=True)
class RpcRequest:
    """A JSON-RPC method call supplied by an endpoint wrapper."""

    method: str
    params: Any = None


class RetryState:
    """Tracks retry state across the attempts of one call."""

    def __init__(self, max_retries: int, backoff: BackoffConfig):
        self.max_retries = max_retries
        self.backoff = backoff
        self.attempt = 0
        self.last_error: Optional[ShipEngineError] = None
        self.total_delay = 0.0

    def should_retry(self, error: ShipEngineError) -> bool:
        """Only retryable errors are retried, and only while retries remain."""
        if self.attempt >= self.max_retries:
            return False
        return error.retryable

    def get_delay(self) -> float:
        delay = self.backoff.delay_for(self.attempt)
        self.total_delay += delay
        return delay

    def increment(self, error: ShipEngineError) -> None:
        self.attempt += 1
        self.last_error = error


def new_request_id() -> str:
    return f"{REQUEST_ID_PREFIX}{uuid.uuid4().hex}"


class RetryEngine:
    """
    Executes JSON-RPC calls against ShipEngine.

    Every attempt is wrapped in a request-sent / response-received event
    pair. Only rate-limit errors are retried; anything else is raised on
    first occurrence.
    """

    def __init__(self, transport: Transport, backoff: Optional[BackoffConfig] = None):
        self.transport = transport
        self.backoff = backoff or BackoffConfig()

    def build_request(
        self, rpc: RpcRequest, config: ShipEngineConfig, request_id: str
    ) -> TransportRequest:
        """
        Build the JSON-RPC POST for one attempt.

        Raises:
            ValidationError: If the params cannot be encoded as JSON
        """
        headers = {
            "Api-Key": config.api_key,
            "User-Agent": f"shipengine-python/{__version__}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        body: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": rpc.method,
        }
        if rpc.params is not None:
            _check_json(rpc.params)
            body["params"] = rpc.params
        return TransportRequest(
            method="POST",
            url=config.base_url,
            headers=headers,
            body=body,
            timeout=config.timeout_seconds,
        )

    def execute(
        self,
        rpc: RpcRequest,
        config: ShipEngineConfig,
        listeners: Iterable[Optional[ShipEngineEventListener]] = (),
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """
        Run a call synchronously.

        Args:
            rpc: Method and params to send
            config: Fully merged settings for this call
            listeners: Observers, in notification order
            cancel_event: When set, skips further attempts and raises
                ``CancelledRequestError``

        Returns:
            The JSON-RPC ``result`` of the first successful attempt
        """
        channel = EventChannel(listeners)
        try:
            result = self._run(rpc, config, channel, cancel_event)
        except ShipEngineError as e:
            e.listener_errors = list(channel.errors)
            raise
        _raise_listener_errors(channel)
        return result

    async def execute_async(
        self,
        rpc: RpcRequest,
        config: ShipEngineConfig,
        listeners: Iterable[Optional[ShipEngineEventListener]] = (),
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Any:
        """Async counterpart of ``execute``; a set ``cancel_event`` also aborts the in-flight attempt."""
        channel = EventChannel(listeners)
        try:
            result = await self._run_async(rpc, config, channel, cancel_event)
        except ShipEngineError as e:
            e.listener_errors = list(channel.errors)
            raise
        _raise_listener_errors(channel)
        return result

    def _run(
        self,
        rpc: RpcRequest,
        config: ShipEngineConfig,
        channel: EventChannel,
        cancel_event: Optional[threading.Event],
    ) -> Any:
        state = RetryState(config.retries, self.backoff)

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise CancelledRequestError()

            request_id = new_request_id()
            request = self.build_request(rpc, config, request_id)
            self._notify_sent(channel, state.attempt, request_id, rpc, request, config)

            started = time.monotonic()
            response: Optional[TransportResponse] = None
            transport_error: Optional[TransportError] = None
            try:
                response = self.transport.send(request)
            except TransportError as e:
                transport_error = e
            elapsed = timedelta(seconds=time.monotonic() - started)

            outcome = AttemptOutcome(
                request_id=request_id,
                timeout_seconds=config.timeout_seconds,
                response=response,
                error=transport_error,
            )
            error = classify(outcome)
            self._notify_received(channel, state.attempt, request_id, rpc, request, elapsed, response, error)

            if error is None:
                logger.debug("Request %s succeeded on attempt %d", request_id, state.attempt)
                return parse_result(outcome)

            if not state.should_retry(error):
                logger.debug(
                    "Request %s failed with %s on attempt %d",
                    request_id,
                    error.error_code.value,
                    state.attempt,
                )
                raise error from transport_error

            delay = state.get_delay()
            logger.info(
                "Request %s hit %s, retrying in %.2fs (attempt %d of %d)",
                request_id,
                error.error_code.value,
                delay,
                state.attempt + 2,
                config.retries + 1,
            )
            state.increment(error)

            if cancel_event is not None:
                if cancel_event.wait(delay):
                    raise CancelledRequestError(request_id=request_id) from error
            else:
                time.sleep(delay)

    async def _run_async(
        self,
        rpc: RpcRequest,
        config: ShipEngineConfig,
        channel: EventChannel,
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        state = RetryState(config.retries, self.backoff)

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise CancelledRequestError()

            request_id = new_request_id()
            request = self.build_request(rpc, config, request_id)
            self._notify_sent(channel, state.attempt, request_id, rpc, request, config)

            started = time.monotonic()
            response: Optional[TransportResponse] = None
            transport_error: Optional[TransportError] = None
            error: Optional[ShipEngineError] = None
            try:
                response = await self._send_async(request, cancel_event)
            except TransportError as e:
                transport_error = e
            except CancelledRequestError:
                error = CancelledRequestError(request_id=request_id)
            elapsed = timedelta(seconds=time.monotonic() - started)

            outcome = AttemptOutcome(
                request_id=request_id,
                timeout_seconds=config.timeout_seconds,
                response=response,
                error=transport_error,
            )
            if error is None:
                error = classify(outcome)
            self._notify_received(channel, state.attempt, request_id, rpc, request, elapsed, response, error)

            if error is None:
                logger.debug("Request %s succeeded on attempt %d", request_id, state.attempt)
                return parse_result(outcome)

            if not state.should_retry(error):
                logger.debug(
                    "Request %s failed with %s on attempt %d",
                    request_id,
                    error.error_code.value,
                    state.attempt,
                )
                raise error from transport_error

            delay = state.get_delay()
            logger.info(
                "Request %s hit %s, retrying in %.2fs (attempt %d of %d)",
                request_id,
                error.error_code.value,
                delay,
                state.attempt + 2,
                config.retries + 1,
            )
            state.increment(error)

            if cancel_event is not None:
                try:
                    await asyncio.wait_for(cancel_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
                else:
                    raise CancelledRequestError(request_id=request_id) from error
            else:
                await asyncio.sleep(delay)

    async def _send_async(
        self, request: TransportRequest, cancel_event: Optional[asyncio.Event]
    ) -> TransportResponse:
        if cancel_event is None:
            return await self.transport.send_async(request)

        send_task = asyncio.ensure_future(self.transport.send_async(request))
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({send_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not send_task.done():
                send_task.cancel()
                await asyncio.gather(send_task, return_exceptions=True)

        if not send_task.cancelled():
            return send_task.result()
        raise CancelledRequestError()

    def _notify_sent(
        self,
        channel: EventChannel,
        retry: int,
        request_id: str,
        rpc: RpcRequest,
        request: TransportRequest,
        config: ShipEngineConfig,
    ) -> None:
        logger.debug("Sending %s request %s (retry %d)", rpc.method, request_id, retry)
        channel.notify_request_sent(
            retry=retry,
            request_id=request_id,
            url=request.url,
            method=rpc.method,
            headers=_redact_headers(request.headers),
            body=request.body,
            timeout=config.timeout,
        )

    def _notify_received(
        self,
        channel: EventChannel,
        retry: int,
        request_id: str,
        rpc: RpcRequest,
        request: TransportRequest,
        elapsed: timedelta,
        response: Optional[TransportResponse],
        error: Optional[ShipEngineError],
    ) -> None:
        channel.notify_response_received(
            retry=retry,
            request_id=request_id,
            url=request.url,
            method=rpc.method,
            elapsed=elapsed,
            status_code=response.status_code if response is not None else None,
            headers=dict(response.headers) if response is not None else None,
            body=response.body if response is not None else None,
            error=error,
        )


def _check_json(params: Any) -> None:
    try:
        json.dumps(params, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Params must be JSON serializable: {e}.") from e


def _redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {
        name: redact_secret(value) if name.lower() == "api-key" else value
        for name, value in headers.items()
    }


def _raise_listener_errors(channel: EventChannel) -> None:
    if channel.errors:
        raise EventListenerError(list(channel.errors)) from channel.errors[0]
