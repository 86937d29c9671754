import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar
from urllib.parse import urlparse

from .exceptions import RestConnectError
from .utils import decode_text, find_header, merge_headers, parse_content_type

T = TypeVar('T')

# A hook receives the raw response before decoding. Raising, or returning an
# exception instance, fails the execution with that message.
PreDeserializationHook = Callable[['RawResponse'], Any]

# Request/Response Models
@dataclass(frozen=True)
class RequestDescriptor:
    """Caller-side description of an outbound call."""
    resource: str = ""
    method: str = "GET"
    body: Optional[bytes] = None
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    hooks: Tuple[PreDeserializationHook, ...] = ()
    decode_error_body: bool = False

    def with_hook(self, hook: PreDeserializationHook) -> 'RequestDescriptor':
        return replace(self, hooks=self.hooks + (hook,))

    def with_header(self, name: str, value: str) -> 'RequestDescriptor':
        return replace(self, headers=merge_headers(self.headers, {name: value}))

    def with_query(self, **params: Any) -> 'RequestDescriptor':
        query = dict(self.query)
        query.update({k: str(v) for k, v in params.items()})
        return replace(self, query=query)

    def with_timeout(self, timeout: Optional[float]) -> 'RequestDescriptor':
        return replace(self, timeout=timeout)

    def with_json_body(self, payload: Any) -> 'RequestDescriptor':
        """Serialize payload as JSON and set the Content-Type header."""
        body = json.dumps(payload).encode('utf-8')
        headers = merge_headers(self.headers, {'Content-Type': 'application/json'})
        return replace(self, body=body, headers=headers)

    def with_text_body(self, text: str, content_type: str = "text/plain; charset=utf-8") -> 'RequestDescriptor':
        headers = merge_headers(self.headers, {'Content-Type': content_type})
        return replace(self, body=text.encode('utf-8'), headers=headers)

@dataclass
class HTTPRequest:
    """Resolved request handed to the transport."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    timeout: Optional[float] = None

    @property
    def parsed_url(self):
        return urlparse(self.url)

class TransportOutcome(Enum):
    """Outcome tag attached by the transport to every raw response."""
    OK = "ok"
    TRANSPORT_ERROR = "transport-error"
    CANCELED = "canceled"

@dataclass
class RawResponse:
    """Transport-level result, prior to any decoding."""
    status_code: int = 0
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    outcome: TransportOutcome = TransportOutcome.OK
    error_message: Optional[str] = None
    url: Optional[str] = None
    elapsed: float = 0.0

    @classmethod
    def transport_error(cls, message: str, url: Optional[str] = None, elapsed: float = 0.0) -> 'RawResponse':
        return cls(outcome=TransportOutcome.TRANSPORT_ERROR, error_message=message, url=url, elapsed=elapsed)

    @classmethod
    def canceled(cls, reason: Optional[str] = None, url: Optional[str] = None, elapsed: float = 0.0) -> 'RawResponse':
        return cls(outcome=TransportOutcome.CANCELED, error_message=reason, url=url, elapsed=elapsed)

    def header(self, name: str) -> Optional[str]:
        return find_header(self.headers, name)

    @property
    def content_type(self) -> str:
        media_type, _ = parse_content_type(self.header('Content-Type'))
        return media_type

    @property
    def encoding(self) -> str:
        _, params = parse_content_type(self.header('Content-Type'))
        return params.get('charset', 'utf-8')

    @property
    def text(self) -> str:
        return decode_text(self.body, self.encoding)

    @property
    def is_success_status(self) -> bool:
        return 200 <= self.status_code < 300

class ResponseStatus(Enum):
    """Client-side execution outcome, orthogonal to the HTTP status code."""
    COMPLETED = "completed"
    ERROR = "error"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"

@dataclass
class ResponseEnvelope(Generic[T]):
    """
    Uniform result of one execution.

    Check `status` before trusting `data`, and `status_code` to detect
    server-side failures that were transported successfully.
    """
    status: ResponseStatus
    status_code: Optional[int] = None
    content: Optional[bytes] = None
    headers: Dict[str, str] = field(default_factory=dict)
    data: Optional[T] = None
    error_message: Optional[str] = None
    fault: Optional[RestConnectError] = None
    request: Optional[HTTPRequest] = None
    elapsed: float = 0.0

    def __post_init__(self):
        if self.status is ResponseStatus.COMPLETED:
            if self.error_message is not None:
                raise ValueError("A completed response cannot carry an error message")
        else:
            if self.data is not None:
                raise ValueError(f"Decoded data is only allowed on completed responses, got {self.status.name}")
            if not self.error_message:
                raise ValueError(f"A {self.status.name} response requires an error message")

    @property
    def text(self) -> Optional[str]:
        if self.content is None:
            return None
        _, params = parse_content_type(find_header(self.headers, 'Content-Type'))
        return decode_text(self.content, params.get('charset'))

    @property
    def is_successful(self) -> bool:
        return (self.status is ResponseStatus.COMPLETED
                and self.status_code is not None
                and 200 <= self.status_code < 300)

    def raise_for_fault(self) -> None:
        """Raise the captured fault, if any."""
        if self.fault is not None:
            raise self.fault
