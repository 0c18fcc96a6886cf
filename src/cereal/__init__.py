"""
Ordered key/value store that round-trips through a compact text token.

Modules:
- keys: loose numeric key normalization ("1" and 1 are the same key)
- codec: JSON -> raw DEFLATE -> base64 token pipeline and its errors
- store: OrderedStore, the fail-soft container
- sealing: Fernet-sealed tokens for tamper-evident links
- links: putting tokens into and taking them out of URL queries
"""

from .codec import TokenDecodeError, TokenEncodeError, TokenError
from .config import CodecSettings
from .keys import normalize_key
from .store import ABSENT, OrderedStore

__all__ = [
    "ABSENT",
    "CodecSettings",
    "OrderedStore",
    "TokenDecodeError",
    "TokenEncodeError",
    "TokenError",
    "normalize_key",
]
