"""
Sync and async REST clients built on the shared RequestExecutor.
Both return ResponseEnvelope objects and never raise for failed executions.
"""

import asyncio
from typing import Any, Dict, List, Optional, Type, TypeVar

from .base import RequestExecutor
from .config import ClientConfig
from .deserialization import CodecRegistry
from .middlewares import AuthenticationMiddleware, BaseMiddleware, LoggingMiddleware, UserAgentMiddleware
from .models import RequestDescriptor, ResponseEnvelope
from .transport import BaseTransport, CancellationSignal

T = TypeVar('T')


def default_middleware(config: ClientConfig) -> List[BaseMiddleware]:
    """User agent, authentication when a token is configured, logging."""
    middleware: List[BaseMiddleware] = [UserAgentMiddleware(config.user_agent)]
    if config.auth_token:
        middleware.append(AuthenticationMiddleware(config.auth_token, config.auth_type))
    middleware.append(LoggingMiddleware())
    return middleware


def _build_executor(config: Optional[ClientConfig], transport: Optional[BaseTransport],
                    middleware: Optional[List[BaseMiddleware]], codecs: Optional[CodecRegistry],
                    overrides: Dict[str, Any]) -> RequestExecutor:
    config = config or ClientConfig()
    if overrides:
        config = config.with_overrides(**overrides)
    if middleware is None:
        middleware = default_middleware(config)
    return RequestExecutor(config, transport, middleware, codecs)


# Asynchronous Client
class AsyncRestClient:
    """Asynchronous REST client."""

    def __init__(self, config: Optional[ClientConfig] = None,
                 transport: Optional[BaseTransport] = None,
                 middleware: Optional[List[BaseMiddleware]] = None,
                 codecs: Optional[CodecRegistry] = None,
                 **config_overrides: Any):
        self._executor = _build_executor(config, transport, middleware, codecs, config_overrides)

    @property
    def config(self) -> ClientConfig:
        return self._executor.config

    async def execute(self, request: RequestDescriptor, target_type: Optional[Type[T]] = None,
                      abort_signal: Optional[CancellationSignal] = None) -> ResponseEnvelope[T]:
        """Execute a request and decode its body into `target_type`."""
        return await self._executor.execute(request, target_type, abort_signal)

    async def execute_raw(self, request: RequestDescriptor,
                          abort_signal: Optional[CancellationSignal] = None) -> ResponseEnvelope[bytes]:
        """Execute a request keeping only the status code and raw content."""
        return await self._executor.execute_raw(request, abort_signal)

    async def get(self, resource: str, target_type: Optional[Type[T]] = None, **kwargs) -> ResponseEnvelope[T]:
        return await self.execute(RequestDescriptor(resource, "GET", **kwargs), target_type)

    async def post(self, resource: str, target_type: Optional[Type[T]] = None, **kwargs) -> ResponseEnvelope[T]:
        return await self.execute(RequestDescriptor(resource, "POST", **kwargs), target_type)

    async def put(self, resource: str, target_type: Optional[Type[T]] = None, **kwargs) -> ResponseEnvelope[T]:
        return await self.execute(RequestDescriptor(resource, "PUT", **kwargs), target_type)

    async def delete(self, resource: str, target_type: Optional[Type[T]] = None, **kwargs) -> ResponseEnvelope[T]:
        return await self.execute(RequestDescriptor(resource, "DELETE", **kwargs), target_type)

    async def close(self):
        """Close the client and cleanup resources."""
        self._executor.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

# Synchronous Client
class RestClient:
    """
    Synchronous REST client.

    Runs the async executor to completion for every call. When called from a
    thread that already runs an event loop the execution is moved to a worker
    thread with its own loop.
    """

    def __init__(self, config: Optional[ClientConfig] = None,
                 transport: Optional[BaseTransport] = None,
                 middleware: Optional[List[BaseMiddleware]] = None,
                 codecs: Optional[CodecRegistry] = None,
                 **config_overrides: Any):
        self._executor = _build_executor(config, transport, middleware, codecs, config_overrides)

    @property
    def config(self) -> ClientConfig:
        return self._executor.config

    def execute(self, request: RequestDescriptor, target_type: Optional[Type[T]] = None,
                abort_signal: Optional[CancellationSignal] = None) -> ResponseEnvelope[T]:
        """Execute a request and decode its body into `target_type`."""
        return self._run_async(self._executor.execute(request, target_type, abort_signal))

    def execute_raw(self, request: RequestDescriptor,
                    abort_signal: Optional[CancellationSignal] = None) -> ResponseEnvelope[bytes]:
        """Execute a request keeping only the status code and raw content."""
        return self._run_async(self._executor.execute_raw(request, abort_signal))

    def get(self, resource: str, target_type: Optional[Type[T]] = None, **kwargs) -> ResponseEnvelope[T]:
        return self.execute(RequestDescriptor(resource, "GET", **kwargs), target_type)

    def post(self, resource: str, target_type: Optional[Type[T]] = None, **kwargs) -> ResponseEnvelope[T]:
        return self.execute(RequestDescriptor(resource, "POST", **kwargs), target_type)

    def put(self, resource: str, target_type: Optional[Type[T]] = None, **kwargs) -> ResponseEnvelope[T]:
        return self.execute(RequestDescriptor(resource, "PUT", **kwargs), target_type)

    def delete(self, resource: str, target_type: Optional[Type[T]] = None, **kwargs) -> ResponseEnvelope[T]:
        return self.execute(RequestDescriptor(resource, "DELETE", **kwargs), target_type)

    def _run_async(self, coro):
        """Run an async coroutine in sync context."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No event loop running, we can use asyncio.run
            return asyncio.run(coro)

        # Already inside an event loop: run on a worker thread with its own loop
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(asyncio.run, coro)
            return future.result()

    def close(self):
        """Close the client and cleanup resources."""
        self._executor.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
