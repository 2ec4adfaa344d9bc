"""
Payload helpers shared by the backends.

to_payload_value mirrors what the engine's JSON payload converter accepts, so
the harness fails on the same values a real worker would. decode_as is the
strict decoding used by Future.get(result_type=...) and the harness result.
"""

import json
from functools import lru_cache
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from .errors import CodecError, DecodeError


def to_payload_value(value: Any) -> Any:
    """Round-trip a value through JSON; bytes pass through unchanged."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as e:
        raise CodecError(f"cannot encode {type(value).__name__}: {e}") from e


@lru_cache(maxsize=128)
def _adapter(result_type: Any) -> TypeAdapter:
    return TypeAdapter(result_type)


def decode_as(value: Any, result_type: Optional[type] = None) -> Any:
    """
    Decode a resolved value into result_type.

    None returns the value unchanged. bytes accepts bytes or UTF-8 encodes a
    string. Everything else is validated strictly by pydantic.
    """
    if result_type is None:
        return value
    if result_type is bytes:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, str):
            return value.encode("utf-8")
        raise DecodeError(f"cannot decode {type(value).__name__} as bytes")
    try:
        return _adapter(result_type).validate_python(value, strict=True)
    except ValidationError as e:
        raise DecodeError(f"cannot decode {type(value).__name__} as {result_type!r}: {e}") from e
