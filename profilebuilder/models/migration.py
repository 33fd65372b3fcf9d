from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MigrationRecord(BaseModel):
    """One row of the ``migrations`` tracking collection: a successfully applied migration."""

    model_config = ConfigDict(populate_by_name=True)

    version: int
    name: str
    applied_at: datetime = Field(alias="applied")

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}"


class MigrationStatus(BaseModel):
    """Applied/pending state of a single migration, as reported by ``migrate status``."""

    model_config = ConfigDict(populate_by_name=True)

    version: int
    name: str
    applied_at: Optional[datetime] = Field(default=None, alias="appliedAt")
    has_source: bool = Field(default=True, alias="hasSource")

    @property
    def applied(self) -> bool:
        return self.applied_at is not None


__all__ = ["MigrationRecord", "MigrationStatus"]
