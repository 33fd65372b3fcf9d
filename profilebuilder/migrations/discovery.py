"""Discovery of migration definitions.

A migration is a Python module named ``<version>_<name>.py`` exporting
``up(db)`` and ``down(db)``. Modules are imported by path, and only when one
of their procedures is actually needed.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from ..repositories.exceptions import ValidationRepositoryError

LOGGER = logging.getLogger("uvicorn.error")

MIGRATION_EXTENSION = ".py"
MIGRATION_FILENAME_RE = re.compile(r"^(\d+)_(.+)\.py$")

MigrationProcedure = Callable[[Any], Union[Awaitable[None], None]]


@dataclass
class MigrationDefinition:
    """A versioned unit of schema change.

    Built either from a file (``path`` set, procedures loaded lazily) or
    registered explicitly with ``up``/``down`` callables.
    """

    version: int
    name: str
    up: Optional[MigrationProcedure] = None
    down: Optional[MigrationProcedure] = None
    path: Optional[Path] = None
    _loaded: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}"

    def _load(self) -> None:
        if self._loaded or self.path is None:
            return
        module = _import_migration_module(self.path, self.version)
        for attr in ("up", "down"):
            procedure = getattr(module, attr, None)
            if not callable(procedure):
                raise ValidationRepositoryError(
                    f"Migration {self.label} does not define a callable {attr}(db)",
                    {attr: "missing or not callable"},
                    context={"migration": self.label, "path": str(self.path)},
                )
            setattr(self, attr, procedure)
        self._loaded = True

    def procedure(self, direction: str) -> MigrationProcedure:
        self._load()
        procedure = self.up if direction == "up" else self.down
        if procedure is None:
            raise ValidationRepositoryError(
                f"Migration {self.label} has no {direction} procedure",
                {direction: "missing"},
                context={"migration": self.label},
            )
        return procedure

    async def run(self, direction: str, db: Any) -> None:
        result = self.procedure(direction)(db)
        if inspect.isawaitable(result):
            await result


def _import_migration_module(path: Path, version: int) -> ModuleType:
    spec = importlib.util.spec_from_file_location(f"profilebuilder_migration_{version}", path)
    if spec is None or spec.loader is None:
        raise ValidationRepositoryError(
            f"Cannot load migration module from {path}",
            context={"path": str(path)},
        )
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise ValidationRepositoryError(
            f"Failed to import migration {path.name}: {exc}",
            context={"path": str(path)},
            cause=exc,
        ) from exc
    return module


def parse_migration_filename(filename: str) -> Optional[tuple[int, str]]:
    """Return ``(version, name)`` for ``<version>_<name>.py``, else ``None``."""

    match = MIGRATION_FILENAME_RE.match(filename)
    if not match:
        return None
    return int(match.group(1)), match.group(2)


def order_migrations(definitions: Iterable[MigrationDefinition]) -> list[MigrationDefinition]:
    """Sort by version and reject duplicate versions."""

    ordered = sorted(definitions, key=lambda definition: definition.version)
    seen: dict[int, MigrationDefinition] = {}
    for definition in ordered:
        previous = seen.get(definition.version)
        if previous is not None:
            raise ValidationRepositoryError(
                f"Duplicate migration version {definition.version}: "
                f"{previous.label} and {definition.label}",
                {str(definition.version): "duplicate version"},
                context={"version": definition.version},
            )
        seen[definition.version] = definition
    return ordered


def discover_migrations(directory: Union[str, Path]) -> list[MigrationDefinition]:
    """List the migrations found in ``directory``, ascending by version."""

    root = Path(directory)
    if not root.is_dir():
        LOGGER.warning("Migrations directory not found: %s", root)
        return []

    definitions = []
    for path in root.iterdir():
        if not path.is_file():
            continue
        parsed = parse_migration_filename(path.name)
        if parsed is None:
            continue
        version, name = parsed
        definitions.append(MigrationDefinition(version=version, name=name, path=path))
    return order_migrations(definitions)


__all__ = [
    "MIGRATION_EXTENSION",
    "MIGRATION_FILENAME_RE",
    "MigrationDefinition",
    "discover_migrations",
    "order_migrations",
    "parse_migration_filename",
]
