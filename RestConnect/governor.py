import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .models import HTTPRequest, RawResponse
from .transport import CancellationSignal

logger = logging.getLogger(__name__)

SendFunction = Callable[[HTTPRequest, CancellationSignal], Awaitable[RawResponse]]

ABORT_MESSAGE = "The request was aborted"


@dataclass(frozen=True)
class GovernedResult:
    """What the governor committed to: a transport result, a timeout or an abort."""
    raw: Optional[RawResponse] = None
    timed_out: bool = False
    aborted: bool = False
    error_message: Optional[str] = None


def _consume_result(task: asyncio.Future) -> None:
    # Results of abandoned transport calls are discarded.
    if not task.cancelled():
        task.exception()


class TimeoutGovernor:
    """
    Races a transport call against a deadline and an optional caller abort.

    The transport task is inspected once, when `asyncio.wait` wakes up. If it
    is done at that moment its result is committed, even when the deadline
    expired on the same tick. Otherwise the timeout or abort is committed and
    whatever the transport produces afterwards is discarded.
    """

    def __init__(self, cancel_grace: float = 0.25):
        self.cancel_grace = cancel_grace

    async def run(self, send: SendFunction, request: HTTPRequest, timeout: Optional[float],
                  abort_signal: Optional[CancellationSignal] = None) -> GovernedResult:
        if abort_signal is not None and abort_signal.cancelled:
            logger.debug(f"Abort requested before dispatch of {request.method} {request.url}")
            return GovernedResult(aborted=True, error_message=abort_signal.reason or ABORT_MESSAGE)

        loop = asyncio.get_running_loop()
        signal = CancellationSignal()
        task = asyncio.ensure_future(send(request, signal))
        abort_waiter = loop.create_future()
        unregister = None

        if abort_signal is not None:
            def _on_abort():
                loop.call_soon_threadsafe(self._settle, abort_waiter)
            unregister = abort_signal.add_callback(_on_abort)

        try:
            done, _ = await asyncio.wait({task, abort_waiter}, timeout=timeout,
                                         return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            signal.cancel("The calling task was cancelled")
            task.cancel()
            task.add_done_callback(_consume_result)
            raise
        finally:
            if unregister is not None:
                unregister()
            if not abort_waiter.done():
                abort_waiter.cancel()

        if task in done:
            return GovernedResult(raw=self._committed_result(task, request))

        if abort_waiter in done:
            message = abort_signal.reason or ABORT_MESSAGE
            logger.warning(f"Request aborted: {request.method} {request.url}")
            signal.cancel(message)
            await self._drain(task, request)
            return GovernedResult(aborted=True, error_message=message)

        message = f"The request timed out after {timeout:g} seconds"
        logger.warning(f"{message}: {request.method} {request.url}")
        signal.cancel(message)
        await self._drain(task, request)
        return GovernedResult(timed_out=True, error_message=message)

    @staticmethod
    def _settle(waiter: asyncio.Future) -> None:
        if not waiter.done():
            waiter.set_result(None)

    def _committed_result(self, task: asyncio.Future, request: HTTPRequest) -> RawResponse:
        error = task.exception()
        if error is None:
            return task.result()
        # Transports should not raise; keep the contract at the boundary anyway.
        logger.error(f"Transport raised for {request.method} {request.url}: {error!r}")
        return RawResponse.transport_error(str(error) or type(error).__name__, url=request.url)

    async def _drain(self, task: asyncio.Future, request: HTTPRequest) -> None:
        """Wait a bounded time for the transport to acknowledge cancellation."""
        done, _ = await asyncio.wait({task}, timeout=self.cancel_grace)
        if not done:
            logger.warning(f"Transport ignored cancellation for {self.cancel_grace}s, "
                           f"abandoning {request.method} {request.url}")
            task.cancel()
        task.add_done_callback(_consume_result)
