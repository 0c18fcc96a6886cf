from __future__ import annotations

import enum
import logging
from collections.abc import Mapping, MutableMapping
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple, Union

from .codec import TokenError, decode_token, encode_entries
from .config import DEFAULT_SETTINGS, CodecSettings
from .keys import Key, normalize_key


logger = logging.getLogger(__name__)


class _Absent(enum.Enum):
    ABSENT = "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


# Returned by `OrderedStore.get` for keys that were never set (or were removed).
ABSENT = _Absent.ABSENT


class StoreItems:
    """Restartable `(key, value)` view; every `iter()` starts at the first entry."""

    __slots__ = ("_store",)

    def __init__(self, store: "OrderedStore") -> None:
        self._store = store

    def __iter__(self) -> Iterator[Tuple[Key, Any]]:
        return self._store._walk()

    def __len__(self) -> int:
        return len(self._store)


class OrderedStore(MutableMapping):
    """
    Insertion-ordered key/value store that round-trips through a single text token.

    The token is the compact JSON of the entries, raw-DEFLATE compressed and
    base64 encoded (see `cereal.codec`). `str(store)` is that token, so a store
    can be dropped straight into a link:

        settings = OrderedStore().set("theme", "dark").set(1, True)
        url = f"page?{settings}"
        again = OrderedStore(str(settings))

    Keys
    - `int` or `str`. Canonical decimal strings are folded to `int`, so `1`
      and `"1"` address the same entry while `"01"` stays a distinct string
      key (see `cereal.keys.normalize_key`).

    Absence
    - `get()` returns `ABSENT` (falsy) for missing keys; a stored `None`,
      `False` or `""` is returned as-is and `has()` is true for it.

    Decoding is fail-soft: a malformed token leaves the store empty and never
    raises. The failure is logged at DEBUG and kept on `decode_error`.

    Not thread-safe. Callers sharing a store across threads must lock around it.
    Removing entries while iterating is supported.
    """

    def __init__(
        self,
        data: Union[str, bytes, "OrderedStore", None] = None,
        *,
        settings: Optional[CodecSettings] = None,
    ) -> None:
        self._settings = settings or DEFAULT_SETTINGS
        self._entries: Dict[Key, Any] = {}
        self._next_index = 0
        self.decode_error: Optional[TokenError] = None
        if data is not None:
            self.decode(data)

    @property
    def settings(self) -> CodecSettings:
        return self._settings

    # -------- Core operations --------
    def set(self, key: Key, value: Any) -> "OrderedStore":
        """Insert or overwrite; an overwritten entry keeps its position."""
        key = normalize_key(key)
        self._entries[key] = value
        if isinstance(key, int) and key >= self._next_index:
            self._next_index = key + 1
        return self

    def append(self, value: Any) -> "OrderedStore":
        """Store `value` under the next free integer key (never below 0)."""
        return self.set(self._next_index, value)

    def get(self, key: Key, default: Any = ABSENT) -> Any:
        return self._entries.get(normalize_key(key), default)

    def has(self, key: Key) -> bool:
        return normalize_key(key) in self._entries

    def remove(self, key: Key) -> "OrderedStore":
        """Delete the entry for `key`; missing keys are ignored."""
        self._entries.pop(normalize_key(key), None)
        return self

    def add_all(self, data: Union[Mapping, Iterable[Tuple[Key, Any]]]) -> "OrderedStore":
        """`set()` every pair of a mapping (or iterable of pairs) in its order."""
        pairs = data.items() if isinstance(data, Mapping) else data
        for key, value in pairs:
            self.set(key, value)
        return self

    def count(self) -> int:
        return len(self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    def iterate(self) -> StoreItems:
        return StoreItems(self)

    # -------- Codec --------
    def encode(self) -> str:
        """Return the token for the current contents.

        Raises TokenEncodeError if a value is not JSON-native (non-finite
        float, tuple, set, arbitrary object, non-str key in a nested dict).
        """
        return encode_entries(self._entries.items(), self._settings)

    def decode(self, data: Union[str, bytes, "OrderedStore"]) -> "OrderedStore":
        """Replace the contents with those of a token or another store.

        Any failure empties the store instead of raising.
        """
        try:
            token = data if isinstance(data, (str, bytes)) else str(data)
            entries = decode_token(token, self._settings)
        except TokenError as ex:
            logger.debug("Discarding undecodable token: %s", ex)
            self._load({}, error=ex)
        else:
            self._load(entries)
        return self

    def _load(self, entries: Dict[Key, Any], *, error: Optional[TokenError] = None) -> None:
        self._entries = dict(entries)
        self._next_index = max([0] + [k + 1 for k in self._entries if isinstance(k, int)])
        self.decode_error = error

    def _walk(self) -> Iterator[Tuple[Key, Any]]:
        # Walk a snapshot of the keys so callers may remove entries mid-loop;
        # keys removed before they are reached are skipped.
        for key in list(self._entries):
            if key in self._entries:
                yield key, self._entries[key]

    # -------- Mapping protocol --------
    def __getitem__(self, key: Key) -> Any:
        return self._entries[normalize_key(key)]

    def __setitem__(self, key: Key, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: Key) -> None:
        del self._entries[normalize_key(key)]

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[Key]:
        return (key for key, _ in self._walk())

    def __len__(self) -> int:
        return len(self._entries)

    def __str__(self) -> str:
        return self.encode()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._entries!r})"
