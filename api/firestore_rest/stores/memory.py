"""In-process document store with the same write semantics as the REST client."""
from __future__ import annotations

import copy
import operator
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable

from firestore_rest.codec import FieldValue, ValueType, decode_value, encode_fields, encode_value
from firestore_rest.exceptions import NotFoundError, ValidationError
from firestore_rest.models.document import DocumentSnapshot, QuerySnapshot
from firestore_rest.query import FieldFilter, Operator, QuerySpec
from firestore_rest.stores.base import AsyncDocumentStore
from firestore_rest.transforms import FieldTransform, Increment, split_transforms

_COMPARATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQUAL: operator.eq,
    Operator.LESS_THAN: operator.lt,
    Operator.GREATER_THAN: operator.gt,
    Operator.LESS_THAN_OR_EQUAL: operator.le,
    Operator.GREATER_THAN_OR_EQUAL: operator.ge,
}


# integers and doubles compare as one number type, every other tag only with itself
_TYPE_FAMILIES = {ValueType.INTEGER.value: "number", ValueType.DOUBLE.value: "number"}


def _type_family(value: FieldValue) -> str | None:
    for value_type in ValueType:
        if value_type.value in value:
            return _TYPE_FAMILIES.get(value_type.value, value_type.value)
    return None


def _lookup(fields: Mapping[str, FieldValue], field_path: str) -> FieldValue | None:
    segments = field_path.split(".")
    value: FieldValue | None = None
    for index, segment in enumerate(segments):
        if segment not in fields:
            return None
        value = fields[segment]
        if index < len(segments) - 1:
            nested = value.get(ValueType.MAP.value)
            if nested is None:
                return None
            fields = nested.get("fields") or {}
    return value


def _matches(fields: Mapping[str, FieldValue], field_filter: FieldFilter) -> bool:
    stored = _lookup(fields, field_filter.field_path)
    if stored is None:
        return False
    expected = encode_value(field_filter.value)
    if _type_family(stored) != _type_family(expected):
        return False
    try:
        return _COMPARATORS[field_filter.op](decode_value(stored), decode_value(expected))
    except TypeError:
        return False


class InMemoryDocumentStore(AsyncDocumentStore):
    """Keeps documents in a dict. Meant for tests and local development."""

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._collections: dict[str, dict[str, dict[str, FieldValue]]] = {}
        self._clock = clock

    def _collection(self, name: str) -> dict[str, dict[str, FieldValue]]:
        return self._collections.setdefault(name, {})

    def _snapshot(self, collection: str, document_id: str, fields: dict[str, FieldValue]) -> DocumentSnapshot:
        # a document without fields reads as missing, as it does over REST
        return DocumentSnapshot(
            id=document_id, fields=copy.deepcopy(fields) or None, name=f"{collection}/{document_id}"
        )

    def _apply_transforms(self, fields: dict[str, FieldValue], transforms: Mapping[str, FieldTransform]) -> None:
        for key, transform in transforms.items():
            if isinstance(transform, Increment):
                current = decode_value(fields[key]) if key in fields else 0
                if isinstance(current, bool) or not isinstance(current, (int, float)):
                    current = 0
                fields[key] = encode_value(current + transform.amount)
            else:
                timestamp = self._clock().isoformat().replace("+00:00", "Z")
                fields[key] = {ValueType.TIMESTAMP.value: timestamp}

    async def get_document(self, collection: str, document_id: str) -> DocumentSnapshot:
        fields = self._collection(collection).get(document_id)
        if fields is None:
            return DocumentSnapshot.missing(document_id)
        return self._snapshot(collection, document_id, fields)

    async def create_document(self, collection: str, data: Mapping[str, Any]) -> str:
        values, transforms = split_transforms(data)
        if transforms:
            raise ValidationError("Field transforms cannot be used when creating a document, use set() instead")
        document_id = uuid.uuid4().hex[:20]
        self._collection(collection)[document_id] = encode_fields(values)
        return document_id

    async def set_document(
        self, collection: str, document_id: str, data: Mapping[str, Any], merge: bool = False
    ) -> None:
        values, transforms = split_transforms(data)
        documents = self._collection(collection)
        fields = dict(documents.get(document_id, {})) if merge else {}
        fields.update(encode_fields(values))
        self._apply_transforms(fields, transforms)
        documents[document_id] = fields

    async def update_document(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None:
        if not data:
            raise ValidationError("update() requires at least one field")
        documents = self._collection(collection)
        if document_id not in documents:
            raise NotFoundError(f"Cannot update missing document {collection}/{document_id}", 404)
        values, transforms = split_transforms(data)
        fields = dict(documents[document_id])
        fields.update(encode_fields(values))
        self._apply_transforms(fields, transforms)
        documents[document_id] = fields

    async def delete_document(self, collection: str, document_id: str) -> None:
        self._collection(collection).pop(document_id, None)

    async def list_documents(self, collection: str) -> QuerySnapshot:
        documents = self._collection(collection)
        return QuerySnapshot(
            [self._snapshot(collection, document_id, documents[document_id]) for document_id in sorted(documents)]
        )

    async def run_query(self, spec: QuerySpec) -> QuerySnapshot:
        documents = self._collection(spec.collection)
        matches = [
            self._snapshot(spec.collection, document_id, documents[document_id])
            for document_id in sorted(documents)
            if all(_matches(documents[document_id], f) for f in spec.filters)
        ]
        if spec.limit is not None:
            matches = matches[: spec.limit]
        return QuerySnapshot(matches)
