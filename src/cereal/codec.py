from __future__ import annotations

import base64
import binascii
import json
import zlib
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from pydantic import JsonValue, TypeAdapter, ValidationError

from .config import DEFAULT_SETTINGS, CodecSettings
from .keys import INT_KEY_MAX, INT_KEY_MIN, Key, normalize_key


# Negative wbits selects a raw DEFLATE stream: no zlib header or checksum.
_RAW_DEFLATE_WBITS = -15

_VALUE_ADAPTER: TypeAdapter[Any] = TypeAdapter(JsonValue)


class TokenError(ValueError):
    """Base error for token encoding and decoding."""


class TokenDecodeError(TokenError):
    """Token is not valid text, not a DEFLATE stream, or not a JSON object/array."""


class TokenEncodeError(TokenError):
    """A stored value has no faithful JSON representation."""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


# -------- Stage 1: structure --------
def dump_payload(entries: Iterable[Tuple[Key, Any]]) -> bytes:
    """Serialize entries to compact JSON in iteration order.

    Integer keys must fit a signed 64-bit integer, since only that range is
    folded back to `int` on decode. Values must be JSON-native (None, bool,
    int, finite float, str, list, dict with str keys). Anything else raises
    TokenEncodeError instead of being silently coerced, so that decoding the
    result gives back equal values.
    """
    obj: Dict[str, Any] = {}
    for key, value in entries:
        if isinstance(key, int) and not INT_KEY_MIN <= key <= INT_KEY_MAX:
            raise TokenEncodeError("Integer key is outside the signed 64-bit range")
        try:
            _VALUE_ADAPTER.validate_python(value, strict=True)
        except ValidationError as ex:
            raise TokenEncodeError(f"Value for key {key!r} is not representable") from ex
        obj[str(key)] = value

    try:
        text = json.dumps(obj, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as ex:
        raise TokenEncodeError(f"Failed to serialize entries: {ex}") from ex
    return text.encode("utf-8")


def parse_payload(payload: bytes) -> Dict[Key, Any]:
    """Parse a JSON payload into normalized entries.

    A top-level object maps its (string) keys through `normalize_key`; a
    top-level array maps each index to its element. Any other document is
    rejected.
    """
    try:
        raw = json.loads(payload.decode("utf-8"), parse_constant=_reject_constant)
    except (ValueError, RecursionError) as ex:
        raise TokenDecodeError("Payload is not valid JSON") from ex

    if isinstance(raw, dict):
        items: Iterable[Tuple[Any, Any]] = raw.items()
    elif isinstance(raw, list):
        items = enumerate(raw)
    else:
        raise TokenDecodeError(f"Payload must be a JSON object or array, got {type(raw).__name__}")
    try:
        return {normalize_key(k): v for k, v in items}
    except (TypeError, ValueError) as ex:
        raise TokenDecodeError("Payload holds an unusable key") from ex


# -------- Stage 2: compression --------
def deflate(payload: bytes, *, level: int = DEFAULT_SETTINGS.compression_level) -> bytes:
    compressor = zlib.compressobj(level, zlib.DEFLATED, _RAW_DEFLATE_WBITS)
    return compressor.compress(payload) + compressor.flush()


def inflate(data: bytes, *, max_bytes: int = DEFAULT_SETTINGS.max_payload_bytes) -> bytes:
    """Inflate a raw DEFLATE stream, refusing output larger than `max_bytes`."""
    decompressor = zlib.decompressobj(_RAW_DEFLATE_WBITS)
    try:
        payload = decompressor.decompress(data, max_bytes + 1)
    except zlib.error as ex:
        raise TokenDecodeError("Corrupt DEFLATE stream") from ex

    if len(payload) > max_bytes:
        raise TokenDecodeError(f"Payload exceeds {max_bytes} bytes")
    if not decompressor.eof:
        raise TokenDecodeError("Truncated DEFLATE stream")
    if decompressor.unused_data:
        raise TokenDecodeError("Trailing data after DEFLATE stream")
    return payload


# -------- Stage 3: text --------
def to_text(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def from_text(token: str) -> bytes:
    try:
        return base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError) as ex:
        raise TokenDecodeError("Token is not valid base64") from ex


# -------- Full pipeline --------
def encode_entries(
    entries: Iterable[Tuple[Key, Any]], settings: Optional[CodecSettings] = None
) -> str:
    """Encode entries to a token: JSON, raw DEFLATE, then standard base64.

    Deterministic for a given entry sequence and compression level.
    Raises TokenEncodeError for unrepresentable values.
    """
    settings = settings or DEFAULT_SETTINGS
    payload = dump_payload(entries)
    return to_text(deflate(payload, level=settings.compression_level))


def decode_token(token: Union[str, bytes], settings: Optional[CodecSettings] = None) -> Dict[Key, Any]:
    """Strict inverse of `encode_entries`.

    Raises TokenDecodeError on any failure; see `OrderedStore.decode` for the
    fail-soft variant.
    """
    settings = settings or DEFAULT_SETTINGS
    if isinstance(token, bytes):
        try:
            token = token.decode("ascii")
        except UnicodeDecodeError as ex:
            raise TokenDecodeError("Token is not ASCII text") from ex
    if not isinstance(token, str):
        raise TokenDecodeError(f"Token must be text, got {type(token).__name__}")
    if not token:
        raise TokenDecodeError("Token is empty")
    if len(token) > settings.max_token_length:
        raise TokenDecodeError(f"Token longer than {settings.max_token_length} characters")

    compressed = from_text(token)
    payload = inflate(compressed, max_bytes=settings.max_payload_bytes)
    return parse_payload(payload)
