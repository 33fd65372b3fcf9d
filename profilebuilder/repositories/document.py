"""Generic document repository shared by every feature module."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Generic,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ReturnDocument

from ..db import get_db
from .exceptions import (
    NotFoundRepositoryError,
    RepositoryError,
    ValidationRepositoryError,
    translate_error,
)

LOGGER = logging.getLogger("uvicorn.error")

ModelT = TypeVar("ModelT", bound=BaseModel)
T = TypeVar("T")

SortSpec = Union[Sequence[tuple[str, int]], Mapping[str, int]]


@dataclass(frozen=True)
class CollectionHandle(Generic[ModelT]):
    """Collection name plus the pydantic model its documents load into.

    Without a model, documents are returned as plain dicts.
    """

    name: str
    model: Optional[type[ModelT]] = None

    def load(self, document: Mapping[str, Any]) -> Any:
        if self.model is None:
            return dict(document)
        return self.model(**document)


CollectionRef = Union[CollectionHandle[Any], str]


def _handle(collection: CollectionRef) -> CollectionHandle[Any]:
    if isinstance(collection, CollectionHandle):
        return collection
    return CollectionHandle(collection)


def _normalize_update(update: Mapping[str, Any], collection: str) -> dict[str, Any]:
    if not update:
        raise ValidationRepositoryError(
            "update document must not be empty",
            context={"collection": collection},
        )
    operators = [key.startswith("$") for key in update]
    if not any(operators):
        return {"$set": dict(update)}
    if not all(operators):
        raise ValidationRepositoryError(
            "update document mixes operators and plain fields",
            {key: "plain field alongside update operators" for key in update if not key.startswith("$")},
            context={"collection": collection},
        )
    return dict(update)


def _normalize_sort(sort: Optional[SortSpec]) -> Optional[list[tuple[str, int]]]:
    if not sort:
        return None
    if isinstance(sort, Mapping):
        return list(sort.items())
    return [(field, direction) for field, direction in sort]


class DocumentRepository:
    """Typed CRUD over any MongoDB collection with a single error-translation boundary."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database

    @property
    def database(self) -> AsyncIOMotorDatabase:
        return self._database

    def collection(self, collection: CollectionRef) -> AsyncIOMotorCollection:
        return self._database[_handle(collection).name]

    @asynccontextmanager
    async def _translated(self, collection: Optional[str] = None) -> AsyncIterator[None]:
        try:
            yield
        except RepositoryError:
            raise
        except Exception as exc:
            error = translate_error(exc, collection)
            LOGGER.debug("Repository operation failed on %s: %r", collection or "<db>", exc)
            raise error from exc

    async def run(
        self,
        operation: Callable[[AsyncIOMotorDatabase], Awaitable[T]],
        *,
        collection: Optional[str] = None,
    ) -> T:
        """Execute ``operation(db)`` inside the error-translation boundary."""

        async with self._translated(collection):
            return await operation(self._database)

    async def find_one(self, collection: CollectionRef, filter: Mapping[str, Any]) -> Any:
        """Return the first match; raise :class:`NotFoundRepositoryError` when there is none."""

        handle = _handle(collection)
        async with self._translated(handle.name):
            doc = await self._database[handle.name].find_one(dict(filter))
            if doc is None:
                raise NotFoundRepositoryError(handle.name, filter)
            return handle.load(doc)

    async def find_one_or_null(self, collection: CollectionRef, filter: Mapping[str, Any]) -> Any:
        handle = _handle(collection)
        async with self._translated(handle.name):
            doc = await self._database[handle.name].find_one(dict(filter))
            return handle.load(doc) if doc is not None else None

    async def find(
        self,
        collection: CollectionRef,
        filter: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Any]:
        """Materialise every match, honouring ``sort``/``skip``/``limit``."""

        handle = _handle(collection)
        async with self._translated(handle.name):
            cursor = self._database[handle.name].find(dict(filter or {}))
            sort_spec = _normalize_sort(sort)
            if sort_spec:
                cursor = cursor.sort(sort_spec)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(length=None)
            return [handle.load(doc) for doc in docs]

    async def insert_one(
        self,
        collection: CollectionRef,
        document: Union[Mapping[str, Any], BaseModel],
    ) -> Any:
        """Insert a copy of ``document`` and return it with its generated ``_id``."""

        handle = _handle(collection)
        if isinstance(document, BaseModel):
            payload = document.model_dump(by_alias=True)
            if payload.get("_id") is None:
                payload.pop("_id", None)
        else:
            payload = dict(document)
        async with self._translated(handle.name):
            result = await self._database[handle.name].insert_one(payload)
            if not result.acknowledged:
                raise RepositoryError(
                    f"Failed to insert document into {handle.name}",
                    context={"collection": handle.name},
                )
            payload["_id"] = result.inserted_id
            return handle.load(payload)

    async def update_one(
        self,
        collection: CollectionRef,
        filter: Mapping[str, Any],
        update: Mapping[str, Any],
        *,
        upsert: bool = False,
    ) -> Any:
        """Apply ``update`` to the first match and return the updated document.

        A plain field map is treated as ``{"$set": update}``; it never replaces
        the whole document.
        """

        handle = _handle(collection)
        final_update = _normalize_update(update, handle.name)
        async with self._translated(handle.name):
            doc = await self._database[handle.name].find_one_and_update(
                dict(filter),
                final_update,
                upsert=upsert,
                return_document=ReturnDocument.AFTER,
            )
            if doc is None:
                raise NotFoundRepositoryError(handle.name, filter)
            return handle.load(doc)

    async def delete_one(self, collection: CollectionRef, filter: Mapping[str, Any]) -> bool:
        handle = _handle(collection)
        async with self._translated(handle.name):
            result = await self._database[handle.name].delete_one(dict(filter))
            if not result.acknowledged:
                raise RepositoryError(
                    f"Failed to delete document from {handle.name}",
                    context={"collection": handle.name},
                )
            if result.deleted_count == 0:
                raise NotFoundRepositoryError(handle.name, filter)
            return True

    async def count_documents(
        self,
        collection: CollectionRef,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> int:
        handle = _handle(collection)
        async with self._translated(handle.name):
            return await self._database[handle.name].count_documents(dict(filter or {}))


def get_document_repository() -> DocumentRepository:
    return DocumentRepository(get_db())


__all__ = [
    "CollectionHandle",
    "DocumentRepository",
    "get_document_repository",
]
