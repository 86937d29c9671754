import logging, time
from typing import Any, List, Optional, Type, TypeVar

from .classifier import ExecutionOutcome, classify, describe, fault_for
from .config import ClientConfig
from .deserialization import CodecRegistry, DeserializationStage
from .exceptions import RestConnectError, TransportFault
from .governor import GovernedResult, TimeoutGovernor
from .middlewares import BaseMiddleware
from .models import HTTPRequest, RawResponse, RequestDescriptor, ResponseEnvelope, ResponseStatus, TransportOutcome
from .transport import BaseTransport, CancellationSignal, HTTPTransport
from .utils import build_url, merge_headers, resolve_timeout

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Execution Orchestrator
class RequestExecutor:
    """
    Public entry point of the pipeline, shared by the sync and async clients.

    transport + governor -> deserialization -> classifier -> envelope. One
    attempt per call; nothing is raised to the caller, every failure ends up
    in the envelope's status and error message.
    """

    def __init__(self, config: Optional[ClientConfig] = None,
                 transport: Optional[BaseTransport] = None,
                 middleware: Optional[List[BaseMiddleware]] = None,
                 codecs: Optional[CodecRegistry] = None):
        self.config = config or ClientConfig()
        self.transport = transport or HTTPTransport(
            cancel_grace=self.config.cancel_grace,
            transport_timeout=self.config.transport_timeout
        )
        self.middleware = middleware or []
        self.governor = TimeoutGovernor(cancel_grace=self.config.cancel_grace)
        self.deserializer = DeserializationStage(codecs)
        self._closed = False

    async def execute(self, descriptor: RequestDescriptor, target_type: Optional[Type[T]] = None,
                      abort_signal: Optional[CancellationSignal] = None) -> ResponseEnvelope[T]:
        """Execute the request and decode the body into `target_type`."""
        return await self._execute(descriptor, target_type, abort_signal, decode=True)

    async def execute_raw(self, descriptor: RequestDescriptor,
                          abort_signal: Optional[CancellationSignal] = None) -> ResponseEnvelope[bytes]:
        """Execute the request without decoding; hooks still run."""
        return await self._execute(descriptor, None, abort_signal, decode=False)

    async def _execute(self, descriptor: RequestDescriptor, target_type: Any,
                       abort_signal: Optional[CancellationSignal], decode: bool) -> ResponseEnvelope:
        start_time = time.monotonic()
        request = None
        try:
            if self._closed:
                raise RuntimeError("Client is closed")

            request = await self._prepare(descriptor)
            governed = await self.governor.run(self.transport.send, request, request.timeout, abort_signal)
            outcome = self._deserialize(governed, descriptor, target_type, decode)
            envelope = self._build_envelope(outcome, request, time.monotonic() - start_time)

            for middleware in reversed(self.middleware):
                envelope = await middleware.process_response(envelope)
            return envelope

        except Exception as e:
            logger.exception(f"Unexpected failure executing {descriptor.method} {descriptor.resource}")
            message = str(e) or type(e).__name__
            fault = e if isinstance(e, RestConnectError) else TransportFault(message)
            return ResponseEnvelope(
                status=ResponseStatus.ERROR,
                error_message=message,
                fault=fault,
                request=request,
                elapsed=time.monotonic() - start_time
            )

    async def _prepare(self, descriptor: RequestDescriptor) -> HTTPRequest:
        """Resolve the descriptor against read-only client configuration."""
        request = HTTPRequest(
            method=descriptor.method.upper(),
            url=build_url(self.config.base_url, descriptor.resource, descriptor.query),
            headers=merge_headers(self.config.default_headers, descriptor.headers),
            body=descriptor.body,
            timeout=resolve_timeout(descriptor.timeout, self.config.default_timeout)
        )

        for middleware in self.middleware:
            request = await middleware.process_request(request)

        logger.debug(f"Dispatching {request.method} {request.url} (timeout={request.timeout})")
        return request

    def _deserialize(self, governed: GovernedResult, descriptor: RequestDescriptor,
                     target_type: Any, decode: bool) -> ExecutionOutcome:
        raw = governed.raw
        if governed.timed_out or governed.aborted or raw is None or raw.outcome is TransportOutcome.CANCELED:
            return ExecutionOutcome(
                raw=raw,
                timed_out=governed.timed_out,
                aborted=governed.aborted,
                error_message=governed.error_message
            )

        if raw.outcome is TransportOutcome.TRANSPORT_ERROR:
            # Hooks still see failed transports; there is nothing to decode.
            fault = self.deserializer.run_hooks(raw, descriptor.hooks)
            return ExecutionOutcome(raw=raw, deserialization_fault=fault, error_message=governed.error_message)

        if decode:
            data, fault = self.deserializer.decode(raw, descriptor.hooks, target_type,
                                                   decode_error_body=descriptor.decode_error_body)
        else:
            data, fault = None, self.deserializer.run_hooks(raw, descriptor.hooks)

        return ExecutionOutcome(raw=raw, deserialization_fault=fault, data=data)

    def _build_envelope(self, outcome: ExecutionOutcome, request: HTTPRequest, elapsed: float) -> ResponseEnvelope:
        status = classify(outcome)
        raw: Optional[RawResponse] = outcome.raw
        transported = raw is not None and raw.outcome is TransportOutcome.OK

        return ResponseEnvelope(
            status=status,
            status_code=raw.status_code if transported else None,
            content=raw.body if transported else None,
            headers=dict(raw.headers) if transported else {},
            data=outcome.data if status is ResponseStatus.COMPLETED else None,
            error_message=describe(outcome),
            fault=fault_for(outcome),
            request=request,
            elapsed=elapsed
        )

    def close(self):
        """Close the executor and its transport."""
        self._closed = True
        self.transport.close()
