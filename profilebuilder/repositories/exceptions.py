"""Custom exceptions for the repository layer.

Every failure raised by :class:`~profilebuilder.repositories.document.DocumentRepository`
or the migration runner is one of the classes below. Driver exceptions never
escape: :func:`translate_error` classifies them and keeps the original on
``cause`` for logging.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import ConnectionFailure, PyMongoError

DUPLICATE_KEY_CODES = (11000, 11001)
UNKNOWN = "unknown"

_COLLECTION_RE = re.compile(r"collection: (?:[^.\s]+\.)?(\S+)")
_DUP_KEY_RE = re.compile(r"dup key: \{\s*:?\s*([^:\s]*)\s*:\s*(.+?)\s*\}")


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate_key"
    CONNECTION = "database_connection_error"
    VALIDATION = "validation_error"
    GENERIC = "database_error"


class RepositoryError(RuntimeError):
    """Base exception raised when a repository operation fails."""

    kind: ClassVar[ErrorKind] = ErrorKind.GENERIC

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

    def annotate(self, **context: Any) -> "RepositoryError":
        """Attach extra context (e.g. the failing migration) and return ``self``."""

        self.context.update(context)
        return self

    def to_dict(self, *, include_internal: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind.value, "message": self.message}
        if include_internal:
            if self.context:
                payload["context"] = self.context
            if self.cause is not None:
                payload["cause"] = repr(self.cause)
        return payload


class NotFoundRepositoryError(RepositoryError):
    """Raised when an expected document is missing."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        collection: str,
        query: Optional[Mapping[str, Any]] = None,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        query = dict(query or {})
        super().__init__(
            f'Document not found in collection "{collection}" with query {query}',
            context={"collection": collection, "query": query},
            cause=cause,
        )
        self.collection = collection
        self.query = query


class DuplicateKeyRepositoryError(RepositoryError):
    """Raised when attempting to insert a document that violates a unique index."""

    kind = ErrorKind.DUPLICATE

    def __init__(
        self,
        collection: str,
        key: str,
        value: Any,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f'Duplicate key error in collection "{collection}" for key "{key}" with value "{value}"',
            context={"collection": collection, "key": key, "value": value},
            cause=cause,
        )
        self.collection = collection
        self.key = key
        self.value = value


class ConnectionRepositoryError(RepositoryError):
    """Raised when the database cannot be reached."""

    kind = ErrorKind.CONNECTION

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Database connection error: {message}", cause=cause)


class ValidationRepositoryError(RepositoryError):
    """Raised for malformed input: bad updates, broken migration sources."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        errors: Optional[Mapping[str, str]] = None,
        *,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, context=context, cause=cause)
        self.errors: dict[str, str] = dict(errors or {})

    def to_dict(self, *, include_internal: bool = False) -> dict[str, Any]:
        payload = super().to_dict(include_internal=include_internal)
        if self.errors:
            payload["errors"] = self.errors
        return payload


def is_duplicate_key_error(exc: BaseException) -> bool:
    return getattr(exc, "code", None) in DUPLICATE_KEY_CODES


def extract_duplicate_key_info(exc: BaseException) -> Optional[tuple[str, str, Any]]:
    """Best-effort ``(collection, key, value)`` from a duplicate-key driver error.

    Returns ``None`` for anything that is not a duplicate-key error. Parts that
    cannot be recovered are reported as ``"unknown"``.
    """

    if not is_duplicate_key_error(exc):
        return None

    message = str(exc)
    details = getattr(exc, "details", None) or {}
    if not isinstance(details, Mapping):
        details = {}

    match = _COLLECTION_RE.search(message)
    collection = match.group(1) if match else UNKNOWN

    key_value = details.get("keyValue")
    if isinstance(key_value, Mapping) and key_value:
        key = next(iter(key_value))
        return collection, str(key), key_value[key]

    key_pattern = details.get("keyPattern")
    if isinstance(key_pattern, Mapping) and key_pattern:
        return collection, str(next(iter(key_pattern))), UNKNOWN

    match = _DUP_KEY_RE.search(message)
    if match:
        key = match.group(1) or UNKNOWN
        return collection, key, match.group(2).strip('"')

    return collection, UNKNOWN, UNKNOWN


def translate_error(exc: BaseException, collection: Optional[str] = None) -> RepositoryError:
    """Classify ``exc`` into exactly one :class:`RepositoryError` kind."""

    if isinstance(exc, RepositoryError):
        return exc

    if isinstance(exc, ConnectionFailure):
        return ConnectionRepositoryError(str(exc), cause=exc)

    # Stored document does not fit the model it is loaded into
    if isinstance(exc, PydanticValidationError):
        errors = {
            ".".join(str(part) for part in err["loc"]) or "__root__": err["msg"]
            for err in exc.errors()
        }
        return ValidationRepositoryError(
            f"Document failed validation: {exc.error_count()} error(s)",
            errors,
            context={"collection": collection} if collection else None,
            cause=exc,
        )

    info = extract_duplicate_key_info(exc)
    if info is not None:
        parsed_collection, key, value = info
        return DuplicateKeyRepositoryError(collection or parsed_collection, key, value, cause=exc)

    if isinstance(exc, PyMongoError):
        message = f"Database operation failed: {exc}"
    else:
        message = f"Database operation failed: {exc.__class__.__name__}: {exc}"
    error = RepositoryError(message, cause=exc)
    if collection:
        error.annotate(collection=collection)
    return error


__all__ = [
    "ConnectionRepositoryError",
    "DuplicateKeyRepositoryError",
    "ErrorKind",
    "NotFoundRepositoryError",
    "RepositoryError",
    "ValidationRepositoryError",
    "extract_duplicate_key_info",
    "is_duplicate_key_error",
    "translate_error",
]
