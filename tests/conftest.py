"""Shared fixtures: settings, in-memory MongoDB store, fake embedder, API client."""

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from gamified_ed.config import Settings
from gamified_ed.main import create_app
from gamified_ed.storage.user_store import UserStore

TEST_SECRET = "test-signing-secret-0123456789abcdefghijklmnop"


class FakeEmbedder:
    """Stands in for EmbeddingClient; returns a fixed vector (or None)."""

    def __init__(self, vector: list[float] | None = None):
        self.vector = vector
        self.calls: list[str] = []
        self.closed = False

    async def embed(self, text: str) -> list[float] | None:
        self.calls.append(text)
        return self.vector

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        openai_api_key=None,
    )


@pytest.fixture
def store():
    client = AsyncMongoMockClient()
    return UserStore(client["gamified_ed_test"]["users"])


@pytest.fixture
def embedder():
    return FakeEmbedder([0.1, 0.2, 0.3])


@pytest.fixture
def app(settings, store, embedder):
    return create_app(settings, store=store, embedder=embedder)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register_payload(**overrides) -> dict:
    payload = {
        "firstName": "Alice",
        "lastName": "Liddell",
        "username": "alice",
        "email": "alice@x.com",
        "age": 14,
        "standard": "9",
        "password": "secret1",
    }
    payload.update(overrides)
    return payload


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
