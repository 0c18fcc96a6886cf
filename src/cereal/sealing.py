from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from .codec import TokenDecodeError, TokenError, deflate, dump_payload, inflate, parse_payload
from .config import DEFAULT_SETTINGS, CodecSettings
from .keys import Key
from .store import OrderedStore


logger = logging.getLogger(__name__)

# Environment variable names for convenience configuration
ENV_FERNET_KEY = "CEREAL_FERNET_KEY"
ENV_SEAL_TTL = "CEREAL_SEAL_TTL"


class TokenSealer:
    """
    Authenticated, encrypted variant of the store token.

    A plain token can be read and edited by anyone holding the link. A sealed
    token carries the same compact DEFLATE payload inside a Fernet token, so
    edits are detected and contents stay private. Sealed tokens use the
    URL-safe base64 alphabet and are not interchangeable with plain tokens.

    Usage
    - `seal(store)` returns the sealed token.
    - `open(sealed)` returns an `OrderedStore`. Like `OrderedStore.decode` it
      never raises: a forged, expired (older than `ttl` seconds) or corrupt
      token gives an empty store with `decode_error` set.

    Environment variables (optional, read by `from_env()`)
    - `CEREAL_FERNET_KEY`: urlsafe base64-encoded key for Fernet
    - `CEREAL_SEAL_TTL`:   maximum token age in seconds
    """

    def __init__(
        self,
        fernet_key: str | bytes,
        *,
        ttl: Optional[int] = None,
        settings: Optional[CodecSettings] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be > 0")
        # Keys come from Fernet.generate_key(); env vars hand them over as str
        if isinstance(fernet_key, str):
            fernet_key = fernet_key.encode("ascii")
        self._fernet = Fernet(fernet_key)
        self._ttl = ttl
        self._settings = settings or DEFAULT_SETTINGS
        self._clock = clock

    # -------- Construction helpers --------
    @classmethod
    def from_env(cls, *, settings: Optional[CodecSettings] = None) -> "TokenSealer":
        fkey = os.environ.get(ENV_FERNET_KEY)
        if not fkey:
            raise RuntimeError(f"Missing required environment variables for token sealing: {ENV_FERNET_KEY}")
        raw_ttl = os.environ.get(ENV_SEAL_TTL)
        try:
            ttl = int(raw_ttl) if raw_ttl else None
        except ValueError as ex:
            raise RuntimeError(f"{ENV_SEAL_TTL} must be an integer number of seconds") from ex
        return cls(fkey, ttl=ttl, settings=settings)

    # -------- Core operations --------
    def seal(self, data: Mapping) -> str:
        """Seal a store (or any mapping) into a Fernet token.

        Raises TokenEncodeError for unrepresentable values.
        """
        payload = dump_payload(data.items())
        compressed = deflate(payload, level=self._settings.compression_level)
        return self._fernet.encrypt_at_time(compressed, int(self._clock())).decode("ascii")

    def unseal(self, sealed: Union[str, bytes]) -> Dict[Key, Any]:
        """Strict inverse of `seal`; raises TokenDecodeError on any failure."""
        if isinstance(sealed, str):
            try:
                sealed = sealed.encode("ascii")
            except UnicodeEncodeError as ex:
                raise TokenDecodeError("Sealed token is not ASCII text") from ex
        if not isinstance(sealed, bytes):
            raise TokenDecodeError(f"Sealed token must be text, got {type(sealed).__name__}")
        if len(sealed) > self._settings.max_token_length:
            raise TokenDecodeError(f"Sealed token longer than {self._settings.max_token_length} characters")

        try:
            if self._ttl is None:
                compressed = self._fernet.decrypt(sealed)
            else:
                compressed = self._fernet.decrypt_at_time(sealed, self._ttl, int(self._clock()))
        except InvalidToken as ex:
            raise TokenDecodeError("Sealed token is forged, corrupt or expired") from ex

        payload = inflate(compressed, max_bytes=self._settings.max_payload_bytes)
        return parse_payload(payload)

    def open(self, sealed: Union[str, bytes], into: Optional[OrderedStore] = None) -> OrderedStore:
        """Load a sealed token into `into` (or a new store); fail-soft to empty."""
        store = into if into is not None else OrderedStore(settings=self._settings)
        try:
            entries = self.unseal(sealed)
        except TokenError as ex:
            logger.debug("Rejecting sealed token: %s", ex)
            store._load({}, error=ex)
        else:
            store._load(entries)
        return store
