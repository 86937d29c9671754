from typing import Dict, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .exceptions import ConfigurationError


def build_url(base_url: Optional[str], resource: str, query: Optional[Mapping[str, str]] = None) -> str:
  """Resolve a resource against the base URL and append query parameters."""
  parts = urlsplit(resource)
  if parts.scheme:
      url = resource
  elif base_url:
      url = f"{base_url.rstrip('/')}/{resource.lstrip('/')}" if resource else base_url
  else:
      raise ConfigurationError(f"Cannot resolve relative resource '{resource}' without a base URL")

  if not query:
      return url

  scheme, netloc, path, existing, fragment = urlsplit(url)
  params = parse_qsl(existing, keep_blank_values=True)
  params.extend((str(k), str(v)) for k, v in query.items())
  return urlunsplit((scheme, netloc, path, urlencode(params), fragment))


def merge_headers(*header_sets: Optional[Mapping[str, str]]) -> Dict[str, str]:
  """Merge header mappings; names compare case-insensitively and later sets win."""
  merged: Dict[str, str] = {}
  names: Dict[str, str] = {}
  for headers in header_sets:
      if not headers:
          continue
      for name, value in headers.items():
          previous = names.get(name.lower())
          if previous is not None:
              del merged[previous]
          names[name.lower()] = name
          merged[name] = value
  return merged


def find_header(headers: Mapping[str, str], name: str) -> Optional[str]:
  """Case-insensitive header lookup."""
  wanted = name.lower()
  for key, value in headers.items():
      if key.lower() == wanted:
          return value
  return None


def parse_content_type(value: Optional[str]) -> Tuple[str, Dict[str, str]]:
  """Split a Content-Type header into its media type and parameters."""
  if not value:
      return "", {}
  media_type, _, rest = value.partition(';')
  params = {}
  for item in rest.split(';'):
      key, sep, val = item.partition('=')
      if sep:
          params[key.strip().lower()] = val.strip().strip('"')
  return media_type.strip().lower(), params


def resolve_timeout(request_timeout: Optional[float], default_timeout: Optional[float]) -> Optional[float]:
  """Request override, else client default; zero or unset means no deadline."""
  timeout = request_timeout if request_timeout is not None else default_timeout
  if timeout is None or timeout <= 0:
      return None
  return float(timeout)


def decode_text(body: bytes, charset: Optional[str]) -> str:
  """Lenient decode; unknown charsets fall back to utf-8."""
  try:
      return body.decode(charset or 'utf-8', errors='replace')
  except LookupError:
      return body.decode('utf-8', errors='replace')
