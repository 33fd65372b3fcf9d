"""Migration runner: apply pending migrations, roll back the latest one.

Applied migrations are tracked in the ``migrations`` collection, one document
per version. The unique index on ``version`` is the only guard against two
runners recording the same migration; it is not a lock, so concurrent
invocations must be serialised by the deployment.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from motor.motor_asyncio import AsyncIOMotorDatabase

from ..db.collections import MIGRATIONS_COLLECTION
from ..models.migration import MigrationRecord, MigrationStatus
from ..repositories.document import CollectionHandle, DocumentRepository
from ..repositories.exceptions import RepositoryError, ValidationRepositoryError
from .discovery import MigrationDefinition, discover_migrations, order_migrations

LOGGER = logging.getLogger("uvicorn.error")

MIGRATIONS = CollectionHandle(MIGRATIONS_COLLECTION, MigrationRecord)

MigrationSource = Union[str, Path, Sequence[MigrationDefinition]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MigrationRunner:
    """Drives ``up``/``down`` procedures strictly one at a time, in version order."""

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        source: MigrationSource,
        *,
        repository: Optional[DocumentRepository] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._database = database
        self._source = source
        self._repository = repository or DocumentRepository(database)
        self._clock = clock or _utcnow

    def available(self) -> list[MigrationDefinition]:
        if isinstance(self._source, (str, Path)):
            return discover_migrations(self._source)
        return order_migrations(self._source)

    async def ensure_index(self) -> None:
        async def _create(db: AsyncIOMotorDatabase) -> None:
            await db[MIGRATIONS.name].create_index("version", unique=True)

        try:
            await self._repository.run(_create, collection=MIGRATIONS.name)
        except RepositoryError as exc:
            LOGGER.warning("Failed to create index on %s collection: %s", MIGRATIONS.name, exc)

    async def applied(self) -> list[MigrationRecord]:
        return await self._repository.find(MIGRATIONS, {}, sort=[("version", 1)])

    async def pending(self) -> list[MigrationDefinition]:
        applied_versions = {record.version for record in await self.applied()}
        return [m for m in self.available() if m.version not in applied_versions]

    async def apply(self) -> list[MigrationDefinition]:
        """Apply every pending migration in ascending version order.

        Stops at the first failure; migrations applied before it stay applied
        and recorded. Returns the migrations applied by this call.
        """

        await self.ensure_index()
        applied_versions = {record.version for record in await self.applied()}
        pending = [m for m in self.available() if m.version not in applied_versions]

        if not pending:
            LOGGER.info("No pending migrations to apply")
            return []

        LOGGER.info("Applying %s pending migrations...", len(pending))
        done: list[MigrationDefinition] = []
        for migration in pending:
            await self._apply_one(migration)
            done.append(migration)

        LOGGER.info("All migrations applied successfully")
        return done

    async def _apply_one(self, migration: MigrationDefinition) -> None:
        LOGGER.info("Applying migration: %s", migration.label)
        try:
            await self._repository.run(lambda db: migration.run("up", db))
            record = MigrationRecord(
                version=migration.version,
                name=migration.name,
                applied_at=self._clock(),
            )
            await self._repository.insert_one(MIGRATIONS, record)
        except RepositoryError as exc:
            LOGGER.error("Failed to apply migration %s: %s", migration.label, exc)
            raise exc.annotate(
                migration=migration.label,
                version=migration.version,
                direction="up",
            )
        LOGGER.info("Migration %s applied successfully", migration.label)

    async def rollback(self) -> Optional[MigrationRecord]:
        """Revert the most recently applied migration, if any.

        The tracking record is removed only after ``down`` succeeds.
        """

        records = await self.applied()
        if not records:
            LOGGER.info("No migrations to rollback")
            return None

        last = records[-1]
        LOGGER.info("Rolling back migration: %s", last.label)
        try:
            migration = self._definition_for(last)
            await self._repository.run(lambda db: migration.run("down", db))
            await self._repository.delete_one(MIGRATIONS, {"version": last.version})
        except RepositoryError as exc:
            LOGGER.error("Failed to revert migration %s: %s", last.label, exc)
            raise exc.annotate(
                migration=last.label,
                version=last.version,
                direction="down",
            )

        LOGGER.info("Migration %s reverted successfully", last.label)
        return last

    def _definition_for(self, record: MigrationRecord) -> MigrationDefinition:
        for migration in self.available():
            if migration.version == record.version:
                return migration
        raise ValidationRepositoryError(
            f"No migration source found for applied version {record.version} ({record.name})",
            {str(record.version): "source missing"},
        )

    async def status(self) -> list[MigrationStatus]:
        """Applied and pending migrations, ascending; recorded versions without a source are included."""

        records = {record.version: record for record in await self.applied()}
        rows: dict[int, MigrationStatus] = {}
        for migration in self.available():
            record = records.get(migration.version)
            rows[migration.version] = MigrationStatus(
                version=migration.version,
                name=migration.name,
                applied_at=record.applied_at if record else None,
            )
        for version, record in records.items():
            if version not in rows:
                rows[version] = MigrationStatus(
                    version=version,
                    name=record.name,
                    applied_at=record.applied_at,
                    has_source=False,
                )
        return [rows[version] for version in sorted(rows)]


__all__ = ["MIGRATIONS", "MigrationRunner"]
