"""Errors raised by the Firestore REST client."""
from __future__ import annotations

from typing import Any


class FirestoreRestError(Exception):
    """Base class for every error raised by this package."""


class KeyFormatError(FirestoreRestError):
    """Exception raised when the service account private key cannot be imported."""


class AuthenticationError(FirestoreRestError):
    """Exception raised when the token endpoint rejects the signed assertion."""


class TransientAuthError(FirestoreRestError):
    """Exception raised when the token endpoint could not be reached. Safe to retry."""


class ValidationError(FirestoreRestError):
    """Exception raised when a query or write is malformed before it is sent."""


class StoreError(FirestoreRestError):
    """Exception raised when a document operation returns a non-2xx status."""

    def __init__(self, message: str, status: int | None = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


class NotFoundError(StoreError):
    """Exception raised when the target document must exist but does not."""
