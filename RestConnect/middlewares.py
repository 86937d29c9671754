import logging
import threading
# Configure logging
logger = logging.getLogger(__name__)

from typing import Dict, Optional, Any

from .models import HTTPRequest, ResponseEnvelope, ResponseStatus
from .utils import find_header, merge_headers

# Middleware System
class BaseMiddleware:
    """Base class for execution middleware."""

    async def process_request(self, request: HTTPRequest) -> HTTPRequest:
        """Process the resolved request before it's sent."""
        return request

    async def process_response(self, envelope: ResponseEnvelope) -> ResponseEnvelope:
        """Process the envelope once the execution has been classified."""
        return envelope

class LoggingMiddleware(BaseMiddleware):
    """Middleware for logging requests and their outcome."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    async def process_request(self, request: HTTPRequest) -> HTTPRequest:
        self.logger.debug(f"Request: {request.method} {request.url}")
        return request

    async def process_response(self, envelope: ResponseEnvelope) -> ResponseEnvelope:
        target = f"{envelope.request.method} {envelope.request.url}" if envelope.request else "request"
        if envelope.status is ResponseStatus.COMPLETED:
            self.logger.debug(f"Response: {target} -> {envelope.status_code} ({envelope.elapsed:.3f}s)")
        else:
            self.logger.error(f"Request failed: {target} - {envelope.status.name}: {envelope.error_message}")
        return envelope

class AuthenticationMiddleware(BaseMiddleware):
    """Middleware for adding authentication headers."""

    def __init__(self, token: str, auth_type: str = "Bearer"):
        self.token = token
        self.auth_type = auth_type

    async def process_request(self, request: HTTPRequest) -> HTTPRequest:
        if find_header(request.headers, 'Authorization') is None:
            request.headers = merge_headers(request.headers, {'Authorization': f"{self.auth_type} {self.token}"})
        return request

class UserAgentMiddleware(BaseMiddleware):
    """Middleware for adding User-Agent header."""

    def __init__(self, user_agent: str):
        self.user_agent = user_agent

    async def process_request(self, request: HTTPRequest) -> HTTPRequest:
        if find_header(request.headers, 'User-Agent') is None:
            request.headers = merge_headers(request.headers, {'User-Agent': self.user_agent})
        return request

class MetricsMiddleware(BaseMiddleware):
    """Middleware collecting per-status execution counts."""

    def __init__(self):
        self.status_counts = {status: 0 for status in ResponseStatus}
        self.server_error_count = 0
        self.total_response_time = 0.0
        self._lock = threading.Lock()

    async def process_response(self, envelope: ResponseEnvelope) -> ResponseEnvelope:
        with self._lock:
            self.status_counts[envelope.status] += 1
            self.total_response_time += envelope.elapsed
            if envelope.status_code is not None and envelope.status_code >= 400:
                self.server_error_count += 1
        return envelope

    def get_stats(self) -> Dict[str, Any]:
        """Get current metrics."""
        with self._lock:
            total = sum(self.status_counts.values())
            failed = total - self.status_counts[ResponseStatus.COMPLETED]
            return {
                'request_count': total,
                'status_counts': {status.value: count for status, count in self.status_counts.items()},
                'server_error_count': self.server_error_count,
                'average_response_time': (
                    self.total_response_time / total
                    if total > 0 else 0.0
                ),
                'error_rate': (
                    failed / total
                    if total > 0 else 0.0
                )
            }
