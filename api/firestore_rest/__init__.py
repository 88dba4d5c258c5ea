"""Minimal Firestore client over the REST API, with its own service account authentication."""
from firestore_rest.clients.auth import ServiceAccountTokenProvider
from firestore_rest.clients.firestore import FirestoreRestClient, get_firestore_client
from firestore_rest.exceptions import (
    AuthenticationError,
    FirestoreRestError,
    KeyFormatError,
    NotFoundError,
    StoreError,
    TransientAuthError,
    ValidationError,
)
from firestore_rest.models.credentials import ServiceAccountCredential
from firestore_rest.models.document import DocumentSnapshot, QuerySnapshot
from firestore_rest.query import Operator, Query, QuerySpec
from firestore_rest.references import CollectionReference, DocumentReference
from firestore_rest.stores.base import AsyncDocumentStore
from firestore_rest.stores.memory import InMemoryDocumentStore
from firestore_rest.transaction import TransactionBatch
from firestore_rest.transforms import SERVER_TIMESTAMP, Increment

__all__ = [
    "AsyncDocumentStore",
    "AuthenticationError",
    "CollectionReference",
    "DocumentReference",
    "DocumentSnapshot",
    "FirestoreRestClient",
    "FirestoreRestError",
    "Increment",
    "InMemoryDocumentStore",
    "KeyFormatError",
    "NotFoundError",
    "Operator",
    "Query",
    "QuerySnapshot",
    "QuerySpec",
    "SERVER_TIMESTAMP",
    "ServiceAccountCredential",
    "ServiceAccountTokenProvider",
    "StoreError",
    "TransactionBatch",
    "TransientAuthError",
    "ValidationError",
    "get_firestore_client",
]
