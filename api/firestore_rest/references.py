"""Collection and document handles. Every operation is delegated to the store."""
from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from firestore_rest.query import Operator, Query, QuerySpec

if TYPE_CHECKING:
    from firestore_rest.models.document import DocumentSnapshot, QuerySnapshot
    from firestore_rest.stores.base import AsyncDocumentStore


class DocumentReference:
    def __init__(self, store: AsyncDocumentStore, collection: str, document_id: str):
        self._store = store
        self.collection = collection
        self.id = document_id

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"

    async def get(self) -> DocumentSnapshot:
        return await self._store.get_document(self.collection, self.id)

    async def set(self, data: Mapping[str, Any], merge: bool = False) -> None:
        await self._store.set_document(self.collection, self.id, data, merge=merge)

    async def update(self, data: Mapping[str, Any]) -> None:
        await self._store.update_document(self.collection, self.id, data)

    async def delete(self) -> None:
        await self._store.delete_document(self.collection, self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DocumentReference):
            return NotImplemented
        return self._store is other._store and self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"DocumentReference({self.path!r})"


class CollectionReference:
    def __init__(self, store: AsyncDocumentStore, name: str):
        self._store = store
        self.name = name

    def document(self, document_id: str) -> DocumentReference:
        return DocumentReference(self._store, self.name, document_id)

    async def add(self, data: Mapping[str, Any]) -> DocumentReference:
        """Create a document with a generated ID."""
        document_id = await self._store.create_document(self.name, data)
        return self.document(document_id)

    def where(self, field_path: str, op: str | Operator, value: Any) -> Query:
        return Query(self._store, QuerySpec(self.name)).where(field_path, op, value)

    def limit(self, count: int) -> Query:
        return Query(self._store, QuerySpec(self.name)).limit(count)

    async def get(self) -> QuerySnapshot:
        """Return every document in the collection."""
        return await self._store.list_documents(self.name)

    def __repr__(self) -> str:
        return f"CollectionReference({self.name!r})"
