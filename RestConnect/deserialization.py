import collections.abc
import dataclasses
import json
import logging
import types
import typing
import xml.etree.ElementTree as ElementTree
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .exceptions import DeserializationFault
from .models import PreDeserializationHook, RawResponse

logger = logging.getLogger(__name__)


def convert(value: Any, target_type: Any) -> Any:
    """Convert parsed JSON into `target_type`, raising TypeError on mismatch."""
    if target_type is None or target_type is Any:
        return value

    origin = typing.get_origin(target_type)
    if origin is typing.Union or origin is getattr(types, "UnionType", None):
        args = typing.get_args(target_type)
        if value is None and type(None) in args:
            return None
        errors = []
        for arg in args:
            if arg is type(None):
                continue
            try:
                return convert(value, arg)
            except (TypeError, ValueError) as e:
                errors.append(str(e))
        raise TypeError("; ".join(errors))

    if origin in (list, tuple, collections.abc.Sequence):
        if not isinstance(value, list):
            raise TypeError(f"Expected a JSON array, got {type(value).__name__}")
        args = typing.get_args(target_type)
        items = [convert(item, args[0] if args else None) for item in value]
        return tuple(items) if origin is tuple else items

    if origin in (dict, collections.abc.Mapping):
        if not isinstance(value, dict):
            raise TypeError(f"Expected a JSON object, got {type(value).__name__}")
        args = typing.get_args(target_type)
        item_type = args[1] if len(args) == 2 else None
        return {key: convert(item, item_type) for key, item in value.items()}

    if dataclasses.is_dataclass(target_type):
        return _build_dataclass(value, target_type)

    if target_type is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if target_type in (int, float) and isinstance(value, bool):
        raise TypeError(f"Expected {target_type.__name__}, got bool")
    if isinstance(target_type, type) and not isinstance(value, target_type):
        raise TypeError(f"Expected {target_type.__name__}, got {type(value).__name__}")
    return value


def _build_dataclass(value: Any, target_type: type) -> Any:
    if not isinstance(value, dict):
        raise TypeError(f"Expected a JSON object for {target_type.__name__}, got {type(value).__name__}")

    hints = typing.get_type_hints(target_type)
    lowered = {str(key).lower(): key for key in value}
    kwargs = {}
    for f in dataclasses.fields(target_type):
        if not f.init:
            continue
        key = f.name if f.name in value else lowered.get(f.name.lower())
        if key is None:
            continue
        kwargs[f.name] = convert(value[key], hints.get(f.name))
    return target_type(**kwargs)


# Codecs
class BaseCodec:
    """Decoder for one family of content types."""
    content_types: Tuple[str, ...] = ()

    def matches(self, media_type: str) -> bool:
        return media_type in self.content_types

    def decode(self, body: bytes, target_type: Any, encoding: str = 'utf-8') -> Any:
        raise NotImplementedError

class JsonCodec(BaseCodec):
    content_types = ('application/json', 'text/json')

    def matches(self, media_type: str) -> bool:
        return super().matches(media_type) or media_type.endswith('+json')

    def decode(self, body: bytes, target_type: Any, encoding: str = 'utf-8') -> Any:
        return convert(json.loads(body.decode(encoding)), target_type)

class TextCodec(BaseCodec):
    def matches(self, media_type: str) -> bool:
        return media_type.startswith('text/')

    def decode(self, body: bytes, target_type: Any, encoding: str = 'utf-8') -> Any:
        if target_type not in (None, Any, str):
            raise TypeError(f"Cannot decode text content into {getattr(target_type, '__name__', target_type)}")
        return body.decode(encoding)

class XmlCodec(BaseCodec):
    content_types = ('application/xml', 'text/xml')

    def matches(self, media_type: str) -> bool:
        return super().matches(media_type) or media_type.endswith('+xml')

    def decode(self, body: bytes, target_type: Any, encoding: str = 'utf-8') -> Any:
        if target_type not in (None, Any, ElementTree.Element):
            raise TypeError(f"Cannot decode XML content into {getattr(target_type, '__name__', target_type)}")
        return ElementTree.fromstring(body)

class CodecRegistry:
    """Ordered codec lookup; codecs registered later take priority."""

    def __init__(self, codecs: Optional[Iterable[BaseCodec]] = None):
        self._codecs: List[BaseCodec] = []
        for codec in (codecs if codecs is not None else (TextCodec(), XmlCodec(), JsonCodec())):
            self.register(codec)

    def register(self, codec: BaseCodec) -> None:
        self._codecs.insert(0, codec)

    def find(self, media_type: str) -> Optional[BaseCodec]:
        for codec in self._codecs:
            if codec.matches(media_type):
                return codec
        return None


# Deserialization Stage
class DeserializationStage:
    """Runs pre-deserialization hooks, then the decoder matching the content type."""

    def __init__(self, codecs: Optional[CodecRegistry] = None):
        self.codecs = codecs or CodecRegistry()

    def run_hooks(self, raw: RawResponse, hooks: Sequence[PreDeserializationHook]) -> Optional[DeserializationFault]:
        """Run hooks in registration order; the first fault stops the chain."""
        for index, hook in enumerate(hooks):
            try:
                result = hook(raw)
            except Exception as e:
                logger.debug(f"Pre-deserialization hook #{index} failed: {e!r}")
                return DeserializationFault.from_exception(e, status_code=raw.status_code or None)
            if isinstance(result, BaseException):
                logger.debug(f"Pre-deserialization hook #{index} returned fault: {result!r}")
                return DeserializationFault.from_exception(result, status_code=raw.status_code or None)
        return None

    def decode(self, raw: RawResponse, hooks: Sequence[PreDeserializationHook], target_type: Any,
               decode_error_body: bool = False) -> Tuple[Any, Optional[DeserializationFault]]:
        """Return (value, fault); exactly one of them is meaningful."""
        fault = self.run_hooks(raw, hooks)
        if fault is not None:
            return None, fault

        if not raw.is_success_status and not decode_error_body:
            logger.debug(f"Skipping decode for status {raw.status_code}")
            return None, None

        if target_type is bytes:
            return raw.body, None
        if not raw.body:
            return None, None
        if target_type is str:
            try:
                return raw.body.decode(raw.encoding), None
            except (LookupError, UnicodeDecodeError) as e:
                logger.debug(f"Decoding text with charset {raw.encoding!r} failed: {e!r}")
                return None, DeserializationFault.from_exception(e, status_code=raw.status_code)

        codec = self.codecs.find(raw.content_type)
        if codec is None:
            message = f"No decoder registered for content type '{raw.content_type or 'unknown'}'"
            return None, DeserializationFault(message, status_code=raw.status_code)

        try:
            return codec.decode(raw.body, target_type, raw.encoding), None
        except Exception as e:
            logger.debug(f"Decoding {raw.content_type} into {target_type!r} failed: {e!r}")
            return None, DeserializationFault.from_exception(e, status_code=raw.status_code)
