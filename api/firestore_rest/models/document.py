from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from firestore_rest.codec import FieldValue, decode_fields, decode_value


@dataclass(frozen=True)
class DocumentSnapshot:
    """
    A document as read from the store.

    ``fields`` holds the wire representation. A snapshot without ``fields`` stands for a
    document that does not exist.
    """

    id: str
    fields: dict[str, FieldValue] | None = None
    name: str | None = None
    create_time: str | None = None
    update_time: str | None = None

    @property
    def exists(self) -> bool:
        return self.fields is not None

    def to_dict(self) -> dict[str, Any] | None:
        """Returns the decoded document, or None when the document does not exist."""
        if not self.exists:
            return None
        return decode_fields(self.fields)

    def get(self, field_name: str, default: Any = None) -> Any:
        if not self.fields or field_name not in self.fields:
            return default
        return decode_value(self.fields[field_name])

    @classmethod
    def from_api(cls, payload: dict[str, Any], document_id: str | None = None) -> DocumentSnapshot:
        """Builds a snapshot from a REST ``Document`` resource."""
        name = payload.get("name")
        return cls(
            id=document_id or name.rsplit("/", 1)[-1],
            # documents without any field come back without the key and read as missing
            fields=payload.get("fields"),
            name=name,
            create_time=payload.get("createTime"),
            update_time=payload.get("updateTime"),
        )

    @classmethod
    def missing(cls, document_id: str) -> DocumentSnapshot:
        return cls(id=document_id)


@dataclass(frozen=True)
class QuerySnapshot:
    """The documents returned by a query or a collection listing, in store order."""

    documents: list[DocumentSnapshot] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.documents)

    @property
    def empty(self) -> bool:
        return not self.documents

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)
