from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from profilebuilder.config import get_settings
from profilebuilder.db import close_mongo_connection, connect_to_mongo, get_db
from profilebuilder.main import create_app
from profilebuilder.repositories.document import DocumentRepository

TEST_DB_NAME = "profilebuilder-test"


@pytest.fixture(autouse=True)
def _env_overrides(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/test")
    monkeypatch.setenv("MONGO_DB_NAME", TEST_DB_NAME)
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.delenv("MIGRATIONS_DIR", raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def mongo_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[AsyncMongoMockClient]:
    client = AsyncMongoMockClient()

    def _client_factory(*_args, **_kwargs) -> AsyncMongoMockClient:
        return client

    monkeypatch.setattr("profilebuilder.db.AsyncIOMotorClient", _client_factory)
    yield client


@pytest_asyncio.fixture
async def database(mongo_client: AsyncMongoMockClient):
    await connect_to_mongo()
    yield get_db()
    await close_mongo_connection()


@pytest.fixture
def repository(database) -> DocumentRepository:
    return DocumentRepository(database)


@pytest_asyncio.fixture
async def api_client(database) -> AsyncIterator[AsyncClient]:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
