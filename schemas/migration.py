"""Migration schema.

Per-file classification computed fresh on every run and never persisted.
"""

from enum import Enum

from pydantic import BaseModel, Field


class MigrationStatus(str, Enum):
    """Migration status of a managed file."""

    LATEST = "LATEST"  # Marker matches the target version
    OUTDATED = "OUTDATED"  # Behind target, content still matches its baseline
    CUSTOMIZED = "CUSTOMIZED"  # User edits, or no marker at all
    MISSING = "MISSING"  # Not installed


class FileMigration(BaseModel):
    """Classification result for a single file."""

    path: str = Field(..., description="Project-relative path")
    status: MigrationStatus = Field(..., description="Classification")
    current_version: str | None = Field(None, description="Version found in the marker")
    target_version: str = Field(..., description="Version being migrated to")
    reason: str | None = Field(None, description="Human readable explanation")

    @property
    def safe_to_overwrite(self) -> bool:
        return self.status == MigrationStatus.OUTDATED
