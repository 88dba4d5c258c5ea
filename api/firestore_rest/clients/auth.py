"""
Service account authentication for the Firestore REST API.

A JWT assertion signed with the service account key (RS256) is exchanged at the
OAuth2 token endpoint for a short-lived bearer token. The token is cached until
shortly before it expires.
"""
from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Iterable
from logging import getLogger
from typing import Any, Callable

import aiohttp
import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from firestore_rest.config import FirestoreRestConfig
from firestore_rest.exceptions import AuthenticationError, KeyFormatError, TransientAuthError
from firestore_rest.models.credentials import AccessToken, ServiceAccountCredential

logger = getLogger(__name__)

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600
# refresh ahead of the real expiry so a token never dies mid-request
EXPIRY_MARGIN_SECONDS = 60


def load_private_key(pem: str) -> RSAPrivateKey:
    """
    Import a PEM encoded RSA private key.

    :param pem: The PEM text, with real newlines.
    :raises KeyFormatError: when the key cannot be parsed or is not an RSA key.
    """
    try:
        key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyFormatError("Service account private key is not a valid PEM private key") from e
    if not isinstance(key, RSAPrivateKey):
        raise KeyFormatError("Service account private key must be an RSA key")
    return key


class ServiceAccountTokenProvider:
    """
    Hands out bearer tokens for a service account.

    There is no lock around a refresh: concurrent callers hitting an empty cache
    may each exchange an assertion. Tokens are interchangeable and the last one
    written wins.
    """

    def __init__(
        self,
        credential: ServiceAccountCredential,
        *,
        session: aiohttp.ClientSession | None = None,
        token_uri: str = FirestoreRestConfig.token_uri,
        scopes: Iterable[str] = FirestoreRestConfig.scopes,
        clock: Callable[[], float] = time.time,
    ):
        """
        :param credential: The service account to authenticate as.
        :param session: HTTP session to use. One is created on first use when omitted.
        :param token_uri: The OAuth2 token endpoint, also the assertion audience.
        :param scopes: The access scopes requested for the token.
        :param clock: Returns the current epoch time in seconds.
        """
        self.credential = credential
        self.token_uri = token_uri
        self.scopes = tuple(scopes)
        self._clock = clock
        self._session = session
        self._owns_session = session is None
        self._key: RSAPrivateKey | None = None
        self._token: AccessToken | None = None

    @property
    def signing_key(self) -> RSAPrivateKey:
        if self._key is None:
            self._key = load_private_key(self.credential.private_key)
        return self._key

    def build_assertion(self, now: float) -> str:
        """Sign the JWT assertion sent to the token endpoint."""
        issued_at = int(now)
        claims = {
            "iss": self.credential.client_email,
            "sub": self.credential.client_email,
            "aud": self.token_uri,
            "iat": issued_at,
            "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
            "scope": " ".join(self.scopes),
        }
        return jwt.encode(claims, self.signing_key, algorithm="RS256", headers={"typ": "JWT"})

    async def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Return a valid bearer token, exchanging a new assertion when needed.

        :param force_refresh: Ignore the cached token, used after the store answered 401.
        """
        now = self._clock()
        if not force_refresh and self._token is not None and self._token.is_valid(now):
            logger.debug("Using cached access token")
            return self._token.token

        assertion = self.build_assertion(now)
        payload = await self._exchange(assertion)

        try:
            token = payload["access_token"]
            expires_in = int(payload.get("expires_in", ASSERTION_LIFETIME_SECONDS))
        except (KeyError, TypeError, ValueError) as e:
            raise AuthenticationError("Token endpoint returned an unexpected payload") from e

        self._token = AccessToken(token=token, expires_at=now + expires_in - EXPIRY_MARGIN_SECONDS)
        logger.info("Obtained access token for %s, valid for %ss", self.credential.client_email, expires_in)
        return token

    def invalidate(self) -> None:
        self._token = None

    async def _exchange(self, assertion: str) -> dict[str, Any]:
        form = {"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion}
        try:
            async with self._get_session().post(self.token_uri, data=form) as response:
                status = response.status
                text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientAuthError(f"Could not reach token endpoint {self.token_uri}: {e}") from e

        try:
            payload = json.loads(text) if text else {}
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if not 200 <= status < 300:
            description = payload.get("error_description") or payload.get("error") or text
            logger.error("Token exchange rejected with status %s: %s", status, description)
            raise AuthenticationError(f"Failed to get access token: {description}")
        return payload

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
