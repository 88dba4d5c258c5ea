from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Mapping
from typing import Any, Callable, TypeVar

from firestore_rest.models.document import DocumentSnapshot, QuerySnapshot
from firestore_rest.query import QuerySpec
from firestore_rest.references import CollectionReference
from firestore_rest.transaction import TransactionBatch

T = TypeVar("T")


class AsyncDocumentStore(ABC):
    """
    The document operations the application relies on.

    Implementations only provide the primitive operations below. Collection and
    document references, queries and transactions are built on top of them, so a
    fake store can stand in for the REST client in tests.
    """

    @abstractmethod
    async def get_document(self, collection: str, document_id: str) -> DocumentSnapshot:
        """
        Read one document. A missing document yields a snapshot with ``exists == False``.

        :param collection: The collection name.
        :param document_id: The document ID.
        """

    @abstractmethod
    async def create_document(self, collection: str, data: Mapping[str, Any]) -> str:
        """
        Create a document with a store-generated ID and return the ID.

        :param collection: The collection name.
        :param data: The document fields.
        """

    @abstractmethod
    async def set_document(
        self, collection: str, document_id: str, data: Mapping[str, Any], merge: bool = False
    ) -> None:
        """
        Write a document, creating it when missing.

        :param collection: The collection name.
        :param document_id: The document ID.
        :param data: The document fields.
        :param merge: Only touch the supplied fields and keep the others when True,
            replace the whole document when False.
        """

    @abstractmethod
    async def update_document(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None:
        """
        Overwrite the supplied fields of an existing document.

        :param collection: The collection name.
        :param document_id: The document ID.
        :param data: The fields to overwrite.
        :raises NotFoundError: when the document does not exist.
        """

    @abstractmethod
    async def delete_document(self, collection: str, document_id: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""

    @abstractmethod
    async def list_documents(self, collection: str) -> QuerySnapshot:
        """Return every document of a collection."""

    @abstractmethod
    async def run_query(self, spec: QuerySpec) -> QuerySnapshot:
        """Return the documents matching ``spec``."""

    def collection(self, name: str) -> CollectionReference:
        return CollectionReference(self, name)

    async def run_transaction(self, callback: Callable[[TransactionBatch], Awaitable[T]]) -> T:
        """
        Run ``callback`` with a fresh batch, then commit the writes it queued.

        Nothing is committed when the callback raises. The commit itself is neither
        atomic nor isolated, see ``TransactionBatch``.

        :param callback: An async callable receiving the batch.
        """
        batch = TransactionBatch()
        result = await callback(batch)
        await batch.commit()
        return result
