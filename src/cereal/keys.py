from __future__ import annotations

import re
from typing import Union


Key = Union[int, str]

# Canonical decimal integers only: no sign other than "-", no leading zeros,
# no whitespace. "-0" is not canonical.
_CANONICAL_INT = re.compile(r"(?:0|-?[1-9][0-9]*)\Z")

# Loose numeric keys are only folded while they fit a signed 64-bit integer,
# so tokens stay interchangeable with platforms that use fixed-width ints.
INT_KEY_MIN = -(2**63)
INT_KEY_MAX = 2**63 - 1
_MAX_KEY_DIGITS = len(str(INT_KEY_MAX))


def normalize_key(key: object) -> Key:
    """Return the canonical form used to address a store entry.

    - `int` keys are kept (`bool` becomes `0`/`1`).
    - `str` keys holding a canonical decimal integer within the signed 64-bit
      range become that `int`, so `1` and `"1"` address the same entry.
    - Every other `str` is kept as-is: "01", "+1", " 1", "-0", "1.0".

    Raises TypeError for any other key type.
    """
    if isinstance(key, bool):
        return int(key)
    if isinstance(key, int):
        return key
    if isinstance(key, str):
        if len(key.lstrip("-")) <= _MAX_KEY_DIGITS and _CANONICAL_INT.match(key):
            value = int(key)
            if INT_KEY_MIN <= value <= INT_KEY_MAX:
                return value
        return key
    raise TypeError(f"store keys must be int or str, not {type(key).__name__}")
