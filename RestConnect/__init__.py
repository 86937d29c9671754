"""RestConnect - An asynchronous HTTP request-execution client."""

# Import key classes for easier access
from .client import RestClient, AsyncRestClient
from .client_factory import ClientFactory, create_sync_client, create_async_client
from .config import ClientConfig, load_client_config
from .deserialization import BaseCodec, CodecRegistry, JsonCodec, TextCodec, XmlCodec
from .exceptions import (
    RestConnectError,
    TransportFault,
    TimeoutFault,
    AbortFault,
    DeserializationFault,
    ConfigurationError
)
from .models import (
    RequestDescriptor,
    RawResponse,
    ResponseEnvelope,
    ResponseStatus,
    TransportOutcome
)
from .transport import BaseTransport, CancellationSignal, HTTPTransport

__version__ = "0.1.0"
