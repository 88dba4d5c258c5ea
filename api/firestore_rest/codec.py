"""
Converts between Python values and the Firestore REST document format.

Every field on the wire is a single-key mapping whose key names the value type,
for example ``{"integerValue": "42"}``. Integers travel as strings.

Known limitation: a float without a fractional part (``3.0``) is encoded as an
integer and decodes back as ``int``. The values compare equal but callers that
need a specific numeric type must convert it themselves.

Integers must fit in a signed 64-bit field. ``NaN`` and the infinities travel as the
strings the REST API expects so request bodies stay strict JSON.
"""
from __future__ import annotations

import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable

from firestore_rest.exceptions import ValidationError

FieldValue = dict[str, Any]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_SIMPLE_FIELD_NAME = re.compile(r"^[_a-zA-Z][_a-zA-Z0-9]*$")


class ValueType(str, Enum):
    """The value tags understood by the codec."""

    NULL = "nullValue"
    STRING = "stringValue"
    INTEGER = "integerValue"
    DOUBLE = "doubleValue"
    BOOLEAN = "booleanValue"
    ARRAY = "arrayValue"
    MAP = "mapValue"
    TIMESTAMP = "timestampValue"


def encode_value(value: Any) -> FieldValue:
    """
    Encode a Python value as a Firestore field value.

    Values outside the supported shapes fall back to their string form.

    :param value: The value to encode.
    """
    if value is None:
        return {ValueType.NULL.value: None}
    if isinstance(value, str):
        return {ValueType.STRING.value: value}
    # bool is a subclass of int and must be matched first
    if isinstance(value, bool):
        return {ValueType.BOOLEAN.value: value}
    if isinstance(value, int):
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValidationError(f"Integer {value} does not fit in a signed 64-bit field")
        return {ValueType.INTEGER.value: str(value)}
    if isinstance(value, float):
        if math.isnan(value):
            return {ValueType.DOUBLE.value: "NaN"}
        if math.isinf(value):
            return {ValueType.DOUBLE.value: "Infinity" if value > 0 else "-Infinity"}
        if value.is_integer() and INT64_MIN <= value <= INT64_MAX:
            return {ValueType.INTEGER.value: str(int(value))}
        return {ValueType.DOUBLE.value: value}
    if isinstance(value, (list, tuple)):
        return {ValueType.ARRAY.value: {"values": [encode_value(item) for item in value]}}
    if isinstance(value, Mapping):
        return {ValueType.MAP.value: {"fields": encode_fields(value)}}
    return {ValueType.STRING.value: str(value)}


def quote_field_path(field_name: str) -> str:
    """Quote a single field name, backticks around anything that is not a plain identifier."""
    if _SIMPLE_FIELD_NAME.match(field_name):
        return field_name
    escaped = field_name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


def encode_field_path(path: str) -> str:
    """
    Encode a dotted path to a nested field, quoting each segment.

    ``profile.tier`` addresses ``tier`` inside the ``profile`` map.
    """
    return ".".join(quote_field_path(segment) for segment in path.split("."))


def encode_fields(data: Mapping[str, Any]) -> dict[str, FieldValue]:
    return {str(key): encode_value(value) for key, value in data.items()}


def encode_document(data: Mapping[str, Any]) -> dict[str, Any]:
    """Encode a mapping as a document body: ``{"fields": {...}}``."""
    return {"fields": encode_fields(data)}


def _decode_array(payload: dict[str, Any]) -> list[Any]:
    return [decode_value(item) for item in (payload or {}).get("values", [])]


def _decode_map(payload: dict[str, Any]) -> dict[str, Any]:
    return decode_fields((payload or {}).get("fields", {}))


_DECODERS: dict[ValueType, Callable[[Any], Any]] = {
    ValueType.NULL: lambda _: None,
    ValueType.STRING: lambda payload: payload,
    ValueType.INTEGER: int,
    ValueType.DOUBLE: float,
    ValueType.BOOLEAN: bool,
    ValueType.ARRAY: _decode_array,
    ValueType.MAP: _decode_map,
    ValueType.TIMESTAMP: lambda payload: payload,
}


def decode_value(value: FieldValue) -> Any:
    """
    Decode a Firestore field value into a Python value.

    Unknown value types (references, geo points, bytes) decode to ``None``.

    :param value: The wire field value.
    """
    for value_type, decoder in _DECODERS.items():
        if value_type.value in value:
            return decoder(value[value_type.value])
    return None


def decode_fields(fields: Mapping[str, FieldValue] | None) -> dict[str, Any]:
    return {key: decode_value(value) for key, value in (fields or {}).items()}


def decode_document(document: Mapping[str, Any]) -> dict[str, Any]:
    """Decode a document body's ``fields`` into a plain mapping."""
    return decode_fields(document.get("fields"))
