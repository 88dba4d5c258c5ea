"""
Firestore client speaking the REST API directly.

This module provides the asynchronous client used across the application, for
runtimes where the native Firestore library cannot be installed. Every request
carries a bearer token from ``ServiceAccountTokenProvider``. A 401 answer forces
one token refresh and one retry; every other failure goes straight to the caller.
"""
from __future__ import annotations

import functools
import json
from collections.abc import Mapping
from logging import getLogger
from typing import Any
from urllib.parse import quote

import aiohttp
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from firestore_rest.clients.auth import ServiceAccountTokenProvider
from firestore_rest.codec import encode_document, encode_fields, quote_field_path
from firestore_rest.config import FirebaseServiceAccountConfig, FirestoreRestConfig
from firestore_rest.exceptions import NotFoundError, StoreError, ValidationError
from firestore_rest.models.credentials import ServiceAccountCredential
from firestore_rest.models.document import DocumentSnapshot, QuerySnapshot
from firestore_rest.query import QuerySpec
from firestore_rest.stores.base import AsyncDocumentStore
from firestore_rest.transforms import FieldTransform, split_transforms

logger = getLogger(__name__)


class _UnauthorizedError(StoreError):
    """The store answered 401, the bearer token was refused."""


def _parse_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _log_reauthentication(retry_state: RetryCallState) -> None:
    logger.warning("Store rejected the access token, refreshing it and retrying once")


class FirestoreRestClient(AsyncDocumentStore):
    """Document store backed by the Firestore REST API."""

    def __init__(
        self,
        credential: ServiceAccountCredential,
        *,
        session: aiohttp.ClientSession | None = None,
        token_provider: ServiceAccountTokenProvider | None = None,
        base_url: str = FirestoreRestConfig.base_url,
        database: str = FirestoreRestConfig.database,
        list_page_size: int = FirestoreRestConfig.list_page_size,
    ):
        """
        :param credential: The service account and project to use.
        :param session: HTTP session to use. One is created on first use when omitted.
        :param token_provider: Token source. Defaults to one built from ``credential``.
        :param base_url: Root of the REST API, without trailing slash.
        :param database: The database ID inside the project.
        :param list_page_size: Page size used when listing a whole collection.
        """
        self.credential = credential
        self.token_provider = token_provider or ServiceAccountTokenProvider(credential, session=session)
        self.database_name = f"projects/{credential.project_id}/databases/{database}"
        self.documents_url = f"{base_url.rstrip('/')}/{self.database_name}/documents"
        self.list_page_size = list_page_size
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> FirestoreRestClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the HTTP sessions created by the client."""
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
        await self.token_provider.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _document_url(self, collection: str, document_id: str) -> str:
        return f"{self.documents_url}/{quote(collection)}/{quote(document_id, safe='')}"

    def _document_name(self, collection: str, document_id: str) -> str:
        return f"{self.database_name}/documents/{collection}/{document_id}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json_body: Any = None,
    ) -> tuple[int, Any]:
        """
        Send an authenticated request and return the status and decoded body.

        Only a 401 is retried, once, with a freshly exchanged token.
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(_UnauthorizedError),
            stop=stop_after_attempt(2),
            before_sleep=_log_reauthentication,
            reraise=True,
        ):
            with attempt:
                force_refresh = attempt.retry_state.attempt_number > 1
                token = await self.token_provider.get_access_token(force_refresh=force_refresh)
                headers = {"Authorization": f"Bearer {token}"}
                logger.debug("%s %s", method, url)
                async with self._get_session().request(
                    method, url, params=params, json=json_body, headers=headers
                ) as response:
                    status = response.status
                    body = _parse_body(await response.text())
                if status == 401:
                    raise _UnauthorizedError(f"{method} {url} was not authorized", status, body)
        return status, body

    @staticmethod
    def _raise_for_status(status: int, body: Any, operation: str) -> None:
        if 200 <= status < 300:
            return
        logger.error("Firestore %s failed with status %s: %s", operation, status, body)
        raise StoreError(f"Firestore {operation} failed with status {status}", status, body)

    async def get_document(self, collection: str, document_id: str) -> DocumentSnapshot:
        status, body = await self._request("GET", self._document_url(collection, document_id))
        if status == 404:
            return DocumentSnapshot.missing(document_id)
        self._raise_for_status(status, body, f"get {collection}/{document_id}")
        return DocumentSnapshot.from_api(body, document_id)

    async def create_document(self, collection: str, data: Mapping[str, Any]) -> str:
        values, transforms = split_transforms(data)
        if transforms:
            raise ValidationError("Field transforms cannot be used when creating a document, use set() instead")
        status, body = await self._request(
            "POST", f"{self.documents_url}/{quote(collection)}", json_body=encode_document(values)
        )
        self._raise_for_status(status, body, f"create in {collection}")
        document_id = body["name"].rsplit("/", 1)[-1]
        logger.info("Created document %s/%s", collection, document_id)
        return document_id

    async def set_document(
        self, collection: str, document_id: str, data: Mapping[str, Any], merge: bool = False
    ) -> None:
        values, transforms = split_transforms(data)
        # without a mask the store replaces the whole document
        mask = [quote_field_path(key) for key in values] if merge else None
        if transforms or (merge and not mask):
            await self._commit_write(collection, document_id, values, transforms, mask, must_exist=False)
            return

        params = [("updateMask.fieldPaths", path) for path in mask] if mask else None
        status, body = await self._request(
            "PATCH", self._document_url(collection, document_id), params=params, json_body=encode_document(values)
        )
        self._raise_for_status(status, body, f"set {collection}/{document_id}")

    async def update_document(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None:
        if not data:
            raise ValidationError("update() requires at least one field")
        values, transforms = split_transforms(data)
        mask = [quote_field_path(key) for key in values]
        if transforms:
            await self._commit_write(collection, document_id, values, transforms, mask, must_exist=True)
            return

        params = [("updateMask.fieldPaths", path) for path in mask]
        params.append(("currentDocument.exists", "true"))
        status, body = await self._request(
            "PATCH", self._document_url(collection, document_id), params=params, json_body=encode_document(values)
        )
        if status == 404:
            raise NotFoundError(f"Cannot update missing document {collection}/{document_id}", status, body)
        self._raise_for_status(status, body, f"update {collection}/{document_id}")

    async def _commit_write(
        self,
        collection: str,
        document_id: str,
        values: Mapping[str, Any],
        transforms: Mapping[str, FieldTransform],
        mask: list[str] | None,
        must_exist: bool,
    ) -> None:
        """Send a single write through ``documents:commit``, needed for field transforms."""
        write: dict[str, Any] = {
            "update": {"name": self._document_name(collection, document_id), "fields": encode_fields(values)},
        }
        if mask is not None:
            write["updateMask"] = {"fieldPaths": mask}
        if transforms:
            write["updateTransforms"] = [
                transform.to_api(quote_field_path(key)) for key, transform in transforms.items()
            ]
        if must_exist:
            write["currentDocument"] = {"exists": True}

        status, body = await self._request("POST", f"{self.documents_url}:commit", json_body={"writes": [write]})
        if status == 404 and must_exist:
            raise NotFoundError(f"Cannot update missing document {collection}/{document_id}", status, body)
        self._raise_for_status(status, body, f"commit {collection}/{document_id}")

    async def delete_document(self, collection: str, document_id: str) -> None:
        status, body = await self._request("DELETE", self._document_url(collection, document_id))
        if status == 404:
            logger.debug("Document %s/%s was already deleted", collection, document_id)
            return
        self._raise_for_status(status, body, f"delete {collection}/{document_id}")

    async def list_documents(self, collection: str) -> QuerySnapshot:
        documents: list[DocumentSnapshot] = []
        page_token = None
        while True:
            params = [("pageSize", str(self.list_page_size))]
            if page_token:
                params.append(("pageToken", page_token))
            status, body = await self._request("GET", f"{self.documents_url}/{quote(collection)}", params=params)
            self._raise_for_status(status, body, f"list {collection}")
            body = body or {}
            documents.extend(DocumentSnapshot.from_api(document) for document in body.get("documents", []))
            page_token = body.get("nextPageToken")
            if not page_token:
                return QuerySnapshot(documents)

    async def run_query(self, spec: QuerySpec) -> QuerySnapshot:
        structured_query = spec.to_structured_query()
        logger.debug("Running query on %s with %s filter(s)", spec.collection, len(spec.filters))
        status, body = await self._request(
            "POST", f"{self.documents_url}:runQuery", json_body={"structuredQuery": structured_query}
        )
        self._raise_for_status(status, body, f"query on {spec.collection}")
        # results without a document only report progress
        return QuerySnapshot(
            [DocumentSnapshot.from_api(result["document"]) for result in body or [] if result.get("document")]
        )


@functools.lru_cache(maxsize=None)
def get_firestore_client() -> FirestoreRestClient:
    """Return the process-wide client, built from the environment on first use."""
    credential = ServiceAccountCredential(
        project_id=FirebaseServiceAccountConfig.project_id,
        client_email=FirebaseServiceAccountConfig.client_email,
        private_key=FirebaseServiceAccountConfig.private_key,
    )
    return FirestoreRestClient(credential)


__all__ = ["FirestoreRestClient", "get_firestore_client", "quote_field_path"]
