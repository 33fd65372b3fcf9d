"""MongoDB collection names used by profilebuilder."""

from __future__ import annotations

MIGRATIONS_COLLECTION = "migrations"
PROFILES_COLLECTION = "profiles"
USERS_COLLECTION = "users"
CATEGORIES_COLLECTION = "categories"

__all__ = [
    "MIGRATIONS_COLLECTION",
    "PROFILES_COLLECTION",
    "USERS_COLLECTION",
    "CATEGORIES_COLLECTION",
]
