"""Generator for new, empty migration files."""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Callable, Optional, Union

from ..repositories.exceptions import ValidationRepositoryError
from .discovery import MIGRATION_EXTENSION, parse_migration_filename

LOGGER = logging.getLogger("uvicorn.error")

_SLUG_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")

MIGRATION_TEMPLATE = '''# Migration: {title}
"""
Description: [Add a description of what this migration does]
"""

from motor.motor_asyncio import AsyncIOMotorDatabase


async def up(db: AsyncIOMotorDatabase) -> None:
    # Implement the changes to apply in this migration
    # Example:
    # await db["users"].update_many({{}}, {{"$set": {{"newField": "default"}}}})
    pass


async def down(db: AsyncIOMotorDatabase) -> None:
    # Implement how to revert the changes in this migration
    # Example:
    # await db["users"].update_many({{}}, {{"$unset": {{"newField": ""}}}})
    pass
'''


def slugify(name: str) -> str:
    """``"Add user bio"`` -> ``"add_user_bio"``."""

    return _SLUG_SEPARATOR_RE.sub("_", name.lower()).strip("_")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _highest_version(root: Path) -> int:
    versions = [
        parsed[0]
        for parsed in (parse_migration_filename(path.name) for path in root.iterdir())
        if parsed is not None
    ]
    return max(versions, default=0)


def create_migration(
    name: str,
    directory: Union[str, Path],
    *,
    clock: Optional[Callable[[], int]] = None,
) -> Path:
    """Write ``<ms-timestamp>_<slug>.py`` with empty ``up``/``down`` and return its path.

    The version never goes below the highest one already in ``directory``, so
    two calls within the same millisecond still get distinct, ordered versions.
    """

    slug = slugify(name or "")
    if not slug:
        raise ValidationRepositoryError(
            "Migration name must contain at least one letter or digit",
            {"name": "empty after normalisation"},
        )

    root = Path(directory)
    root.mkdir(parents=True, exist_ok=True)

    version = max((clock or _now_ms)(), _highest_version(root) + 1)
    path = root / f"{version}_{slug}{MIGRATION_EXTENSION}"
    # The title only ever lands in a comment line
    title = "".join(ch for ch in " ".join(name.split()) if ch.isprintable())
    try:
        with path.open("x", encoding="utf-8") as handle:
            handle.write(MIGRATION_TEMPLATE.format(title=title))
    except FileExistsError as exc:
        raise ValidationRepositoryError(
            f"Migration file already exists: {path.name}",
            context={"path": str(path)},
            cause=exc,
        ) from exc

    LOGGER.info("Created new migration: %s", path)
    return path


__all__ = ["MIGRATION_TEMPLATE", "create_migration", "slugify"]
