from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from firestore_rest.clients.auth import ServiceAccountTokenProvider
from firestore_rest.models.credentials import ServiceAccountCredential

PROJECT_ID = "demo-project"
CLIENT_EMAIL = "sms-gateway@demo-project.iam.gserviceaccount.com"
TOKEN_URI = "https://oauth2.googleapis.com/token"
DOCUMENTS_URL = f"https://firestore.googleapis.com/v1/projects/{PROJECT_ID}/databases/(default)/documents"
DOCUMENT_NAME_PREFIX = f"projects/{PROJECT_ID}/databases/(default)/documents"


class FakeResponse:
    """Stands in for an aiohttp response used as an async context manager."""

    def __init__(self, status: int = 200, body: Any = None):
        self.status = status
        if body is None:
            self._text = ""
        elif isinstance(body, str):
            self._text = body
        else:
            self._text = json.dumps(body)

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


@dataclass
class RecordedRequest:
    method: str
    url: str
    params: Any = None
    json: Any = None
    headers: Any = None
    data: Any = None


class FakeSession:
    """Records every request and answers from a queue of responses or exceptions."""

    def __init__(self):
        self.requests: list[RecordedRequest] = []
        self._responses: list[FakeResponse | Exception] = []
        self.closed = False

    def queue(self, status: int = 200, body: Any = None) -> FakeSession:
        self._responses.append(FakeResponse(status, body))
        return self

    def queue_error(self, error: Exception) -> FakeSession:
        self._responses.append(error)
        return self

    def queue_token(self, token: str = "ya29.access-token", expires_in: int = 3600) -> FakeSession:
        return self.queue(200, {"access_token": token, "expires_in": expires_in, "token_type": "Bearer"})

    def request(self, method: str, url: str, *, params=None, json=None, headers=None, data=None):
        self.requests.append(RecordedRequest(method, url, params, json, headers, data))
        if not self._responses:
            raise AssertionError(f"Unexpected request {method} {url}")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url: str, **kwargs: Any):
        return self.request("POST", url, **kwargs)

    def requests_to(self, url: str) -> list[RecordedRequest]:
        return [request for request in self.requests if request.url == url]

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def document_payload():
    """Builds a REST `Document` resource."""

    def build(collection: str, document_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": f"{DOCUMENT_NAME_PREFIX}/{collection}/{document_id}",
            "fields": fields,
            "createTime": "2024-05-01T10:00:00.000000Z",
            "updateTime": "2024-05-01T10:00:00.000000Z",
        }

    return build


@pytest.fixture
def documents_url() -> str:
    return DOCUMENTS_URL


@pytest.fixture
def token_uri() -> str:
    return TOKEN_URI


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def credential(private_key_pem) -> ServiceAccountCredential:
    return ServiceAccountCredential(project_id=PROJECT_ID, client_email=CLIENT_EMAIL, private_key=private_key_pem)


@pytest.fixture
def clock() -> FakeClock:
    # real time keeps the signed assertion verifiable with PyJWT
    return FakeClock(float(int(time.time())))


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def token_provider(credential, session, clock) -> ServiceAccountTokenProvider:
    return ServiceAccountTokenProvider(credential, session=session, token_uri=TOKEN_URI, clock=clock)


@pytest.fixture
def stub_token_provider() -> Mock:
    """A token provider that never signs anything."""
    provider = Mock(spec=ServiceAccountTokenProvider)
    provider.get_access_token = AsyncMock(return_value="token-1")
    provider.close = AsyncMock()
    return provider
