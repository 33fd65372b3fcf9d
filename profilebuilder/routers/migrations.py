from fastapi import APIRouter, Depends

from ..config import get_settings
from ..migrations.runner import MigrationRunner
from ..repositories.document import DocumentRepository, get_document_repository

router = APIRouter(prefix="/admin/migrations", tags=["admin"])


@router.get("")
async def migration_status(
    repository: DocumentRepository = Depends(get_document_repository),
):
    """Applied and pending migrations, ascending by version."""
    runner = MigrationRunner(
        repository.database,
        get_settings().migrations_dir,
        repository=repository,
    )
    rows = await runner.status()
    return {
        "migrations": [row.model_dump(by_alias=True, mode="json") for row in rows],
        "pending": sum(1 for row in rows if not row.applied),
    }


__all__ = ["router"]
