""" Client configuration: JSON file, environment overrides, keyword overrides """

import os, json
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "RestConnect/0.1.0"

# Environment variable -> (config field, parser)
ENV_OVERRIDES = {
    'RESTCONNECT_BASE_URL': ('base_url', str),
    'RESTCONNECT_TIMEOUT': ('default_timeout', float),
    'RESTCONNECT_USER_AGENT': ('user_agent', str),
    'RESTCONNECT_AUTH_TOKEN': ('auth_token', str),
    'RESTCONNECT_CANCEL_GRACE': ('cancel_grace', float),
}


@dataclass(frozen=True)
class ClientConfig:
    """Read-only configuration shared by every execution of a client."""
    base_url: Optional[str] = None
    default_timeout: Optional[float] = None
    default_headers: Dict[str, str] = field(default_factory=dict)
    user_agent: str = DEFAULT_USER_AGENT
    auth_token: Optional[str] = None
    auth_type: str = "Bearer"
    cancel_grace: float = 0.25
    transport_timeout: float = 100.0

    def __post_init__(self):
        """Validate values that would otherwise fail deep inside an execution."""
        if self.base_url is not None and not self.base_url.startswith(('http://', 'https://')):
            raise ConfigurationError(f"base_url must start with http:// or https://, got '{self.base_url}'")
        if self.default_timeout is not None and self.default_timeout < 0:
            raise ConfigurationError(f"default_timeout cannot be negative, got {self.default_timeout}")
        if self.cancel_grace < 0:
            raise ConfigurationError(f"cancel_grace cannot be negative, got {self.cancel_grace}")
        if self.transport_timeout <= 0:
            raise ConfigurationError(f"transport_timeout must be positive, got {self.transport_timeout}")

    def with_overrides(self, **overrides: Any) -> 'ClientConfig':
        """Return a copy with the given non-None fields replaced."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(_known_fields(overrides))
        return ClientConfig(**values)


def _known_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(ClientConfig)}
    unknown = set(data) - names
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
    return {k: v for k, v in data.items() if v is not None}


def _env_overrides() -> Dict[str, Any]:
    overrides = {}
    for env_var, (name, parser) in ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw is None or raw == "":
            continue
        try:
            overrides[name] = parser(raw)
        except ValueError:
            raise ConfigurationError(f"Invalid value for {env_var}: '{raw}'")
    return overrides


def load_client_config(config_path: Optional[str] = None, **overrides: Any) -> ClientConfig:
    """Load configuration from an optional JSON file, then environment, then keywords."""
    values: Dict[str, Any] = {}

    if config_path is not None:
        try:
            with open(config_path, 'r', encoding='utf-8') as f: raw_config = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Client configuration file not found at {config_path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in client configuration file: {e}")
        if not isinstance(raw_config, dict):
            raise ConfigurationError("Client configuration file must contain a JSON object")
        values.update(_known_fields(raw_config))
        logger.debug(f"Loaded client configuration from {config_path}")

    values.update(_env_overrides())
    values.update(_known_fields(overrides))
    return ClientConfig(**values)
