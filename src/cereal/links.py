"""
Helpers for carrying a store token in a URL query string.

The token travels as the bare first query item, e.g. `page?<token>&edit`.
Building the rest of the request (forms, redirects) is up to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional, Union
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from .config import CodecSettings
from .store import OrderedStore


def link_for(store: Union[OrderedStore, str], base_url: str, *flags: str) -> str:
    """Return `base_url` with the token as its query, followed by `flags`.

    Any query already on `base_url` is replaced. The token is percent-encoded
    so that `+`, `/` and `=` survive form-style query parsing.
    """
    items = [quote(str(store), safe="")] + [quote(flag, safe="") for flag in flags]
    parts = urlsplit(base_url)
    return urlunsplit(parts._replace(query="&".join(items)))


def token_from_query(query: Union[str, Mapping]) -> str:
    """Extract the token from a raw query string or parsed parameters.

    - str: the first `&`-separated item, percent-decoded. A leading `?` is
      ignored. `+` is kept literally rather than read as a space.
    - Mapping: its first key, as produced by most query parsers.

    Spaces are mapped back to `+` in both cases; base64 never contains
    spaces, so they can only come from form-style decoding of `+`.
    """
    if isinstance(query, Mapping):
        first = next(iter(query), "")
        return str(first).replace(" ", "+")

    text = query[1:] if query.startswith("?") else query
    first = text.split("&", 1)[0]
    return unquote(first).replace(" ", "+")


def token_from_url(url: str) -> str:
    return token_from_query(urlsplit(url).query)


def store_from_query(
    query: Union[str, Mapping], *, settings: Optional[CodecSettings] = None
) -> OrderedStore:
    """Decode the store carried in a query; empty when there is none or it is corrupt."""
    return OrderedStore(settings=settings).decode(token_from_query(query))
