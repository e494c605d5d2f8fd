"""Unwrapping of the typed values that raw queries return."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

_TYPE_KEY = "prisma__type"
_VALUE_KEY = "prisma__value"


def _unwrap(obj: dict[str, Any]) -> Any:
    value = obj.get(_VALUE_KEY)
    if obj[_TYPE_KEY] == "bytes":
        if not isinstance(value, str):
            raise ValueError("expected bytes")
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"invalid base64 bytes value: {exc}") from exc
    return value


def _transform_child(value: Any) -> Any:
    if isinstance(value, dict) and _TYPE_KEY in value:
        return _unwrap(value)
    return transform_value(value)


def transform_value(value: Any) -> Any:
    """Replace typed wrappers below the given value by their plain values.

    The value itself is never unwrapped, only the values it contains. Byte
    values are returned as ``bytes``.
    """
    if isinstance(value, dict):
        return {key: _transform_child(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_transform_child(item) for item in value]
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


def transform_response(data: bytes | str) -> bytes:
    """Unwrap the typed values in a JSON document and return the new document.

    For example ``[{"prisma__type":"string","prisma__value":"asdf"}]``
    becomes ``["asdf"]``. Byte values come out base64 encoded.
    """
    decoded = json.loads(data)
    transformed = transform_value(decoded)
    return json.dumps(
        transformed,
        default=_json_default,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")