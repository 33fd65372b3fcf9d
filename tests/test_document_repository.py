from __future__ import annotations

from typing import Any, Optional

import pytest
from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from profilebuilder.repositories.document import CollectionHandle, DocumentRepository
from profilebuilder.repositories.exceptions import (
    ConnectionRepositoryError,
    DuplicateKeyRepositoryError,
    NotFoundRepositoryError,
    RepositoryError,
    ValidationRepositoryError,
)


class Category(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: Optional[ObjectId] = Field(default=None, alias="_id")
    slug: str
    name: str
    is_enabled: bool = Field(default=True, alias="isEnabled")


CATEGORIES = CollectionHandle("categories", Category)


@pytest.mark.asyncio
async def test_find_one_raises_not_found_while_or_null_returns_none(repository: DocumentRepository) -> None:
    with pytest.raises(NotFoundRepositoryError) as info:
        await repository.find_one("profiles", {"slug": "missing"})
    assert info.value.collection == "profiles"
    assert info.value.query == {"slug": "missing"}

    assert await repository.find_one_or_null("profiles", {"slug": "missing"}) is None


@pytest.mark.asyncio
async def test_insert_one_returns_generated_id_without_mutating_input(repository: DocumentRepository) -> None:
    document = {"slug": "ada", "name": "Ada"}
    created = await repository.insert_one("profiles", document)

    assert isinstance(created["_id"], ObjectId)
    assert "_id" not in document

    fetched = await repository.find_one("profiles", {"_id": created["_id"]})
    assert fetched["slug"] == "ada"


@pytest.mark.asyncio
async def test_insert_duplicate_raises_duplicate_with_collection(repository: DocumentRepository) -> None:
    await repository.collection("users").create_index("email", unique=True)
    await repository.insert_one("users", {"email": "ada@example.com"})

    with pytest.raises(DuplicateKeyRepositoryError) as info:
        await repository.insert_one("users", {"email": "ada@example.com"})
    assert info.value.collection == "users"
    assert info.value.cause is not None


@pytest.mark.asyncio
async def test_find_sorts_skips_and_limits(repository: DocumentRepository) -> None:
    for index in (3, 1, 4, 2, 5):
        await repository.insert_one("profiles", {"slug": f"p{index}", "rank": index})

    ranks = [doc["rank"] for doc in await repository.find("profiles", {}, sort=[("rank", 1)])]
    assert ranks == [1, 2, 3, 4, 5]

    page = await repository.find("profiles", {"rank": {"$gte": 2}}, sort={"rank": -1}, skip=1, limit=2)
    assert [doc["rank"] for doc in page] == [4, 3]

    assert await repository.find("profiles", {"rank": 99}) == []


@pytest.mark.asyncio
async def test_update_plain_map_matches_explicit_set(repository: DocumentRepository) -> None:
    await repository.insert_one("profiles", {"slug": "a", "name": "A", "views": 1})
    await repository.insert_one("profiles", {"slug": "b", "name": "B", "views": 1})

    plain = await repository.update_one("profiles", {"slug": "a"}, {"name": "Renamed"})
    explicit = await repository.update_one("profiles", {"slug": "b"}, {"$set": {"name": "Renamed"}})

    strip = lambda doc: {k: v for k, v in doc.items() if k not in ("_id", "slug")}  # noqa: E731
    assert strip(plain) == strip(explicit) == {"name": "Renamed", "views": 1}


@pytest.mark.asyncio
async def test_update_accepts_other_operators(repository: DocumentRepository) -> None:
    await repository.insert_one("profiles", {"slug": "a", "views": 1})
    updated = await repository.update_one("profiles", {"slug": "a"}, {"$inc": {"views": 2}})
    assert updated["views"] == 3


@pytest.mark.asyncio
async def test_update_missing_document_raises_not_found(repository: DocumentRepository) -> None:
    with pytest.raises(NotFoundRepositoryError):
        await repository.update_one("profiles", {"slug": "ghost"}, {"name": "x"})


@pytest.mark.asyncio
@pytest.mark.parametrize("update", [{}, {"$set": {"a": 1}, "b": 2}])
async def test_update_rejects_empty_or_mixed_documents(repository: DocumentRepository, update: dict) -> None:
    with pytest.raises(ValidationRepositoryError) as info:
        await repository.update_one("profiles", {"slug": "a"}, update)
    assert info.value.context["collection"] == "profiles"


@pytest.mark.asyncio
async def test_update_with_upsert_inserts_missing_document(repository: DocumentRepository) -> None:
    created = await repository.update_one("profiles", {"slug": "new"}, {"name": "New"}, upsert=True)

    assert created["slug"] == "new"
    assert created["name"] == "New"
    assert "_id" in created
    assert await repository.count_documents("profiles", {}) == 1

    again = await repository.update_one("profiles", {"slug": "new"}, {"name": "Newer"}, upsert=True)
    assert again["_id"] == created["_id"]
    assert await repository.count_documents("profiles", {}) == 1


@pytest.mark.asyncio
async def test_delete_one_then_not_found(repository: DocumentRepository) -> None:
    await repository.insert_one("profiles", {"slug": "gone"})

    assert await repository.delete_one("profiles", {"slug": "gone"}) is True
    with pytest.raises(NotFoundRepositoryError):
        await repository.delete_one("profiles", {"slug": "gone"})


@pytest.mark.asyncio
async def test_count_documents_allows_zero(repository: DocumentRepository) -> None:
    assert await repository.count_documents("profiles", {"slug": "none"}) == 0
    await repository.insert_one("profiles", {"slug": "one"})
    assert await repository.count_documents("profiles") == 1


@pytest.mark.asyncio
async def test_collection_handle_loads_models(repository: DocumentRepository) -> None:
    created = await repository.insert_one(CATEGORIES, Category(slug="design", name="Design"))
    assert isinstance(created, Category)
    assert created.id is not None

    stored = await repository.collection(CATEGORIES).find_one({"slug": "design"})
    assert stored["isEnabled"] is True

    updated = await repository.update_one(CATEGORIES, {"slug": "design"}, {"isEnabled": False})
    assert isinstance(updated, Category)
    assert updated.is_enabled is False

    listed = await repository.find(CATEGORIES, {})
    assert [category.slug for category in listed] == ["design"]


@pytest.mark.asyncio
async def test_run_translates_errors_from_custom_operations(repository: DocumentRepository) -> None:
    async def _boom(db: Any) -> None:
        raise ValueError("custom failure")

    with pytest.raises(RepositoryError) as info:
        await repository.run(_boom)
    assert isinstance(info.value.cause, ValueError)

    async def _count(db: Any) -> int:
        return await db["profiles"].count_documents({})

    assert await repository.run(_count) == 0


class _FailingCollection:
    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    async def find_one(self, *args: Any, **kwargs: Any) -> Any:
        raise self._exc

    async def insert_one(self, *args: Any, **kwargs: Any) -> Any:
        raise self._exc


class _FailingDatabase:
    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    def __getitem__(self, name: str) -> _FailingCollection:
        return _FailingCollection(self._exc)


@pytest.mark.asyncio
async def test_connection_failures_surface_as_connection_errors() -> None:
    repository = DocumentRepository(_FailingDatabase(ServerSelectionTimeoutError("no servers available")))

    with pytest.raises(ConnectionRepositoryError) as info:
        await repository.find_one_or_null("profiles", {"slug": "x"})
    assert isinstance(info.value.__cause__, ServerSelectionTimeoutError)


@pytest.mark.asyncio
async def test_duplicate_driver_error_carries_offending_field() -> None:
    driver_error = DuplicateKeyError(
        "E11000 duplicate key error collection: profilebuilder.users index: username_1",
        11000,
        {"keyValue": {"username": "ada"}, "keyPattern": {"username": 1}},
    )
    repository = DocumentRepository(_FailingDatabase(driver_error))

    with pytest.raises(DuplicateKeyRepositoryError) as info:
        await repository.insert_one("users", {"username": "ada"})
    assert info.value.collection == "users"
    assert info.value.key == "username"
    assert info.value.value == "ada"
