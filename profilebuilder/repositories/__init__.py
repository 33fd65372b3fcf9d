"""Repository layer to abstract MongoDB access patterns."""

from .document import CollectionHandle, DocumentRepository, get_document_repository
from .exceptions import (
    ConnectionRepositoryError,
    DuplicateKeyRepositoryError,
    ErrorKind,
    NotFoundRepositoryError,
    RepositoryError,
    ValidationRepositoryError,
)

__all__ = [
    "CollectionHandle",
    "ConnectionRepositoryError",
    "DocumentRepository",
    "DuplicateKeyRepositoryError",
    "ErrorKind",
    "NotFoundRepositoryError",
    "RepositoryError",
    "ValidationRepositoryError",
    "get_document_repository",
]
