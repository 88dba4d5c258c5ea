"""
Server-side field transforms.

Transforms can be used as top-level field values in ``set`` and ``update``::

    await users.document(email).update({"totalSent": Increment(1), "lastUsed": SERVER_TIMESTAMP})
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from firestore_rest.codec import encode_value


@dataclass(frozen=True)
class Increment:
    """Adds ``amount`` to the current numeric value of the field (missing counts as 0)."""

    amount: int | float

    def to_api(self, field_path: str) -> dict[str, Any]:
        return {"fieldPath": field_path, "increment": encode_value(self.amount)}


@dataclass(frozen=True)
class ServerTimestamp:
    """Sets the field to the time the store processed the write."""

    def to_api(self, field_path: str) -> dict[str, Any]:
        return {"fieldPath": field_path, "setToServerValue": "REQUEST_TIME"}


SERVER_TIMESTAMP = ServerTimestamp()

FieldTransform = Union[Increment, ServerTimestamp]


def split_transforms(fields: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, FieldTransform]]:
    """Separates plain values from transform sentinels."""
    values: dict[str, Any] = {}
    transforms: dict[str, FieldTransform] = {}
    for key, value in fields.items():
        if isinstance(value, (Increment, ServerTimestamp)):
            transforms[key] = value
        else:
            values[key] = value
    return values, transforms
