""" Client Factory: builds clients from a config object, a JSON file or keywords """

from typing import Any, Dict, List, Optional, Union

from .client import AsyncRestClient, RestClient
from .config import ClientConfig, load_client_config
from .deserialization import CodecRegistry
from .middlewares import BaseMiddleware
from .transport import BaseTransport

ConfigSource = Union[ClientConfig, str, None]


class ClientFactory:
    """Factory class for creating REST clients from configuration."""

    @staticmethod
    def resolve_config(source: ConfigSource = None, **overrides: Any) -> ClientConfig:
        """Accept a ready config, a path to a JSON file, or nothing (environment only)."""
        if isinstance(source, ClientConfig):
            return source.with_overrides(**overrides) if overrides else source
        return load_client_config(source, **overrides)

    @staticmethod
    def create_sync_client(
        source: ConfigSource = None,
        transport: Optional[BaseTransport] = None,
        middleware: Optional[List[BaseMiddleware]] = None,
        codecs: Optional[CodecRegistry] = None,
        **overrides: Any
    ) -> RestClient:
        """Create a synchronous client."""
        config = ClientFactory.resolve_config(source, **overrides)
        return RestClient(config, transport=transport, middleware=middleware, codecs=codecs)

    @staticmethod
    def create_async_client(
        source: ConfigSource = None,
        transport: Optional[BaseTransport] = None,
        middleware: Optional[List[BaseMiddleware]] = None,
        codecs: Optional[CodecRegistry] = None,
        **overrides: Any
    ) -> AsyncRestClient:
        """Create an asynchronous client."""
        config = ClientFactory.resolve_config(source, **overrides)
        return AsyncRestClient(config, transport=transport, middleware=middleware, codecs=codecs)

    @staticmethod
    def get_config_info(source: ConfigSource = None) -> Dict[str, Any]:
        """Describe the effective configuration, with the auth token masked."""
        config = ClientFactory.resolve_config(source)
        return {
            "base_url": config.base_url,
            "default_timeout": config.default_timeout,
            "default_headers": dict(config.default_headers),
            "user_agent": config.user_agent,
            "auth_token": "***" if config.auth_token else None,
            "auth_type": config.auth_type,
            "cancel_grace": config.cancel_grace,
            "transport_timeout": config.transport_timeout
        }


def create_sync_client(source: ConfigSource = None, **kwargs: Any) -> RestClient:
    """Create a synchronous REST client."""
    return ClientFactory.create_sync_client(source, **kwargs)


def create_async_client(source: ConfigSource = None, **kwargs: Any) -> AsyncRestClient:
    """Create an asynchronous REST client."""
    return ClientFactory.create_async_client(source, **kwargs)
