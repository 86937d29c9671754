import asyncio, time, ssl, socket, http.client, threading, logging
from typing import Callable, Dict, List, Optional, Tuple

from .models import HTTPRequest, RawResponse

logger = logging.getLogger(__name__)


# Cancellation
class CancellationSignal:
    """
    Thread-safe cooperative cancellation flag.

    Callers hold one to abort an execution; the governor hands a fresh one to
    the transport for every execution. Callbacks run exactly once, on the
    thread that calls `cancel`.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "The request was aborted") -> bool:
        """Signal cancellation. Returns False when already cancelled."""
        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")
        return True

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)
        callback()
        return lambda: None

    def _remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

class _Cancelled(Exception):
    """Internal marker: the worker thread observed the cancellation signal."""
    pass

# Transport Adapter
class BaseTransport:
    """
    Contract for the collaborator performing the network call.

    `send` never raises for ordinary network failures; they are returned as a
    TRANSPORT_ERROR raw response. Once `signal` is cancelled the call must give
    up promptly and return a CANCELED raw response. `request.timeout` is a
    deadline hint only; the governor enforces the deadline.
    """

    async def send(self, request: HTTPRequest, signal: CancellationSignal) -> RawResponse:
        raise NotImplementedError

    def close(self):
        pass

class HTTPTransport(BaseTransport):
    """`http.client` transport: one connection per request, run in the loop's executor."""

    def __init__(self, cancel_grace: float = 0.25, transport_timeout: float = 100.0):
        self.cancel_grace = cancel_grace
        self.transport_timeout = transport_timeout

    def _create_connection(self, parsed_url, timeout: float) -> http.client.HTTPConnection:
        """Create a new connection for the given URL."""
        if parsed_url.scheme == 'https':
            return http.client.HTTPSConnection(
                parsed_url.hostname,
                parsed_url.port,
                timeout=timeout,
                context=ssl.create_default_context()
            )
        elif parsed_url.scheme == 'http':
            return http.client.HTTPConnection(
                parsed_url.hostname,
                parsed_url.port,
                timeout=timeout
            )
        raise http.client.InvalidURL(f"Unsupported URL scheme '{parsed_url.scheme}' in {parsed_url.geturl()}")

    def _socket_timeout(self, request: HTTPRequest) -> float:
        # Socket timeouts must never fire before the governor's deadline.
        if request.timeout:
            return request.timeout + self.cancel_grace
        return self.transport_timeout

    async def send(self, request: HTTPRequest, signal: CancellationSignal) -> RawResponse:
        """Perform the request, honoring `signal` at every I/O boundary."""
        start_time = time.monotonic()
        if signal.cancelled:
            return RawResponse.canceled(signal.reason, url=request.url)

        try:
            conn = self._create_connection(request.parsed_url, self._socket_timeout(request))
        except http.client.HTTPException as e:
            return RawResponse.transport_error(f"Invalid request URL: {e}", url=request.url)

        unregister = signal.add_callback(lambda: self._abort_connection(conn))
        loop = asyncio.get_running_loop()
        try:
            status_code, headers, body = await loop.run_in_executor(
                None, self._sync_request, conn, request, signal
            )
        except _Cancelled:
            return RawResponse.canceled(signal.reason, url=request.url, elapsed=time.monotonic() - start_time)
        except (OSError, http.client.HTTPException) as e:
            elapsed = time.monotonic() - start_time
            if signal.cancelled:
                return RawResponse.canceled(signal.reason, url=request.url, elapsed=elapsed)
            logger.debug(f"Transport failure for {request.method} {request.url}: {e!r}")
            return RawResponse.transport_error(self._describe_error(e), url=request.url, elapsed=elapsed)
        finally:
            unregister()
            conn.close()

        elapsed = time.monotonic() - start_time
        if signal.cancelled:
            return RawResponse.canceled(signal.reason, url=request.url, elapsed=elapsed)

        return RawResponse(
            status_code=status_code,
            headers=headers,
            body=body,
            url=request.url,
            elapsed=elapsed
        )

    def _sync_request(self, conn: http.client.HTTPConnection, request: HTTPRequest,
                      signal: CancellationSignal) -> Tuple[int, Dict[str, str], bytes]:
        """Blocking request/response exchange, executed on a worker thread."""
        parsed_url = request.parsed_url
        path = parsed_url.path or '/'
        if parsed_url.query:
            path += '?' + parsed_url.query

        if signal.cancelled:
            raise _Cancelled()
        conn.connect()

        if signal.cancelled:
            raise _Cancelled()
        conn.putrequest(request.method, path)
        for header_name, header_value in request.headers.items():
            conn.putheader(header_name, header_value)

        if request.body:
            conn.putheader('Content-Length', str(len(request.body)))
            conn.endheaders()
            conn.send(request.body)
        elif request.method in ('POST', 'PUT', 'PATCH'):
            conn.putheader('Content-Length', '0')
            conn.endheaders()
        else:
            conn.endheaders()

        if signal.cancelled:
            raise _Cancelled()
        response = conn.getresponse()
        body = response.read()
        return response.status, dict(response.headers), body

    def _abort_connection(self, conn: http.client.HTTPConnection) -> None:
        """Unblock a worker thread stuck in socket I/O."""
        sock = conn.sock
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Socket already closed while cancelling: {e}")

    def _describe_error(self, error: Exception) -> str:
        if isinstance(error, socket.timeout):
            return f"Connection timed out: {error}"
        if isinstance(error, socket.gaierror):
            return f"Name resolution failed: {error}"
        if isinstance(error, ConnectionRefusedError):
            return f"Connection refused: {error}"
        if isinstance(error, http.client.HTTPException):
            return f"Protocol error: {error!r}"
        return f"Connection error: {error}"
