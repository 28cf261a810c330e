"""HTTP transport used by the retry engine."""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

import httpx


@dataclass(frozen=True)
class TransportRequest:
    """One outbound HTTP request."""

    method: str
    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]
    timeout: float  # seconds


@dataclass(frozen=True)
class TransportResponse:
    """Raw HTTP response handed back to the engine."""

    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Any] = None  # Decoded JSON, or text when the body is not JSON

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class TransportError(Exception):
    """Base exception for failures below the HTTP layer."""


class TransportTimeout(TransportError):
    """Raised when a request exceeds its timeout."""


class TransportFailure(TransportError):
    """Raised for connection, DNS, protocol and response decoding failures."""


class Transport(ABC):
    """
    Sends requests on behalf of the engine.

    Implementations must be safe to share between concurrent calls.
    """

    @abstractmethod
    def send(self, request: TransportRequest) -> TransportResponse:
        """Send a request synchronously."""
        pass

    @abstractmethod
    async def send_async(self, request: TransportRequest) -> TransportResponse:
        """Send a request asynchronously."""
        pass

    def close(self) -> None:
        """Release synchronous resources."""

    async def close_async(self) -> None:
        """Release asynchronous resources."""

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close_async()


class HttpxTransport(Transport):
    """Default transport backed by httpx clients, created on first use."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        async_client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client
        self._async_client = async_client
        self._lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        """Get or create synchronous client."""
        with self._lock:
            if self._client is None:
                self._client = httpx.Client()
            return self._client

    @property
    def async_client(self) -> httpx.AsyncClient:
        """Get or create asynchronous client."""
        with self._lock:
            if self._async_client is None:
                self._async_client = httpx.AsyncClient()
            return self._async_client

    def send(self, request: TransportRequest) -> TransportResponse:
        try:
            response = self.client.request(
                request.method,
                request.url,
                headers=request.headers,
                json=request.body,
                timeout=request.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportTimeout(str(e) or "timed out") from e
        except httpx.HTTPError as e:
            raise TransportFailure(str(e) or type(e).__name__) from e
        return _to_transport_response(response)

    async def send_async(self, request: TransportRequest) -> TransportResponse:
        try:
            response = await self.async_client.request(
                request.method,
                request.url,
                headers=request.headers,
                json=request.body,
                timeout=request.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportTimeout(str(e) or "timed out") from e
        except httpx.HTTPError as e:
            raise TransportFailure(str(e) or type(e).__name__) from e
        return _to_transport_response(response)

    def close(self) -> None:
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()

    async def close_async(self) -> None:
        with self._lock:
            async_client, self._async_client = self._async_client, None
        if async_client is not None:
            await async_client.aclose()


def _to_transport_response(response: httpx.Response) -> TransportResponse:
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text or None
    return TransportResponse(
        status_code=response.status_code,
        headers={k.lower(): v for k, v in response.headers.items()},
        body=body,
    )
