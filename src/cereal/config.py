from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field


# Environment variable names for convenience configuration
ENV_COMPRESSION_LEVEL = "CEREAL_COMPRESSION_LEVEL"
ENV_MAX_TOKEN_LENGTH = "CEREAL_MAX_TOKEN_LENGTH"
ENV_MAX_PAYLOAD_BYTES = "CEREAL_MAX_PAYLOAD_BYTES"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.environ.get(name)
    return v if v not in (None, "") else default


class CodecSettings(BaseModel):
    """
    Tunables for the token pipeline.

    Fields
    - compression_level: DEFLATE level, -1..9. Tokens are only byte-identical
      between stores that share the same level.
    - max_token_length: longest token (in characters) accepted by decode.
    - max_payload_bytes: largest inflated JSON payload accepted by decode.
      Tokens usually arrive in user-editable URLs; this bounds how far a short
      token may expand.

    Environment variables (optional, read by `from_env()`)
    - `CEREAL_COMPRESSION_LEVEL`
    - `CEREAL_MAX_TOKEN_LENGTH`
    - `CEREAL_MAX_PAYLOAD_BYTES`
    """

    model_config = {"frozen": True}

    compression_level: int = Field(default=6, ge=-1, le=9, description="DEFLATE level")
    max_token_length: int = Field(default=8192, gt=0, description="Max accepted token length")
    max_payload_bytes: int = Field(
        default=65536,
        gt=0,
        description="Max inflated payload size accepted on decode",
    )

    @classmethod
    def from_env(cls) -> "CodecSettings":
        """Build settings from the environment; unset or empty variables keep defaults.

        Raises pydantic.ValidationError when a variable holds an invalid value.
        """
        raw = {
            "compression_level": _getenv(ENV_COMPRESSION_LEVEL),
            "max_token_length": _getenv(ENV_MAX_TOKEN_LENGTH),
            "max_payload_bytes": _getenv(ENV_MAX_PAYLOAD_BYTES),
        }
        return cls.model_validate({k: v for k, v in raw.items() if v is not None})


DEFAULT_SETTINGS = CodecSettings()
