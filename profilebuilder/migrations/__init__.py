"""Versioned schema migrations for the profilebuilder MongoDB database."""

from .discovery import MigrationDefinition, discover_migrations
from .runner import MIGRATIONS, MigrationRunner
from .scaffold import create_migration

__all__ = [
    "MIGRATIONS",
    "MigrationDefinition",
    "MigrationRunner",
    "create_migration",
    "discover_migrations",
]
