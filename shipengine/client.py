"""ShipEngine client: config handling plus the retry engine."""

import asyncio
import threading
from typing import Optional, List, Any, Mapping, Union

from .config import ShipEngineConfig, ConfigOverrides
from .events import ShipEngineEventListener
from .retry import RetryEngine, BackoffConfig, RpcRequest
from .transport import Transport, HttpxTransport

ConfigInput = Union[str, ShipEngineConfig, Mapping[str, Any]]


class ShipEngineClient:
    """
    Entry point for calling the ShipEngine JSON-RPC API.

    Endpoint wrappers call ``request`` with a method name, params and an
    optional per-call settings override. The client itself holds no mutable
    per-call state, so one instance can serve concurrent calls.

    Basic usage:
        client = ShipEngineClient("my-api-key")
        result = client.request("address/validate", [{"street": ["4 Jersey St"]}])

    With per-call overrides:
        client.request("address/validate", params, config={"retries": 0})
    """

    def __init__(
        self,
        config: ConfigInput,
        transport: Optional[Transport] = None,
        backoff: Optional[BackoffConfig] = None,
    ):
        self.config = _to_config(config)
        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport()
        self.engine = RetryEngine(self.transport, backoff)
        self._listeners: List[ShipEngineEventListener] = []

    @property
    def listeners(self) -> List[ShipEngineEventListener]:
        """Listeners added with ``subscribe``, in notification order."""
        return list(self._listeners)

    def subscribe(self, listener: ShipEngineEventListener) -> None:
        """Add a listener notified after ``config.event_listener``."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: ShipEngineEventListener) -> None:
        self._listeners.remove(listener)

    def request(
        self,
        method: str,
        params: Any = None,
        config: Optional[ConfigOverrides] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """
        Call a JSON-RPC method.

        Args:
            method: JSON-RPC method name, e.g. "address/validate"
            params: JSON-serializable params
            config: Per-call overrides (api_key, base_url, page_size, retries,
                timeout, event_listener)
            cancel_event: Set it from another thread to stop further attempts.
                It is checked before each attempt and during backoff; an
                attempt already in flight runs until it completes or times out.

        Returns:
            The parsed JSON-RPC result

        Raises:
            ShipEngineError: Any validation, remote or transport failure
        """
        call_config = self.config.merge(config)
        return self.engine.execute(
            RpcRequest(method, params),
            call_config,
            listeners=self._listeners_for(call_config),
            cancel_event=cancel_event,
        )

    async def request_async(
        self,
        method: str,
        params: Any = None,
        config: Optional[ConfigOverrides] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Any:
        """Async counterpart of ``request``."""
        call_config = self.config.merge(config)
        return await self.engine.execute_async(
            RpcRequest(method, params),
            call_config,
            listeners=self._listeners_for(call_config),
            cancel_event=cancel_event,
        )

    def _listeners_for(self, config: ShipEngineConfig) -> List[ShipEngineEventListener]:
        listeners = [config.event_listener] if config.event_listener is not None else []
        return listeners + self._listeners

    def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            self.transport.close()

    async def close_async(self) -> None:
        if self._owns_transport:
            await self.transport.close_async()

    def __enter__(self) -> "ShipEngineClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    async def __aenter__(self) -> "ShipEngineClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close_async()


def _to_config(config: ConfigInput) -> ShipEngineConfig:
    if isinstance(config, ShipEngineConfig):
        return config
    if isinstance(config, str):
        return ShipEngineConfig(api_key=config)
    return ShipEngineConfig.from_mapping(config)


# Convenience function for quick usage
def create_client(
    api_key: str,
    base_url: Optional[str] = None,
    retries: Optional[int] = None,
    timeout: Optional[float] = None,
    event_listener: Optional[ShipEngineEventListener] = None,
) -> ShipEngineClient:
    """
    Create a client from keyword settings; ``None`` keeps each default.

    Returns:
        Configured ShipEngineClient
    """
    settings = {
        "api_key": api_key,
        "base_url": base_url,
        "retries": retries,
        "timeout": timeout,
        "event_listener": event_listener,
    }
    return ShipEngineClient(settings)
