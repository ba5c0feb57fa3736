"""Snapshot schema.

A snapshot is an immutable directory of file copies described by a manifest.
The manifest is serialized with camelCase keys so it stays readable by the
other tooling that shares the ``.tmskit/backups`` layout.
"""

from pydantic import BaseModel, ConfigDict, Field


class FileRecord(BaseModel):
    """One file captured by a snapshot."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    relative_path: str = Field(..., alias="relativePath", description="Path relative to the project root")
    original_path: str = Field(..., alias="originalPath", description="Absolute path of the original file")
    size: int = Field(..., ge=0, description="Size in bytes at capture time")


class SnapshotManifest(BaseModel):
    """Manifest written as the last step of a successful snapshot."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    timestamp: str = Field(..., description="Snapshot id, sortable timestamp")
    version: str = Field(..., description="Version the run was moving to")
    reason: str = Field(..., description="Why the snapshot was taken")
    project_root: str = Field(..., alias="projectRoot", description="Project root at capture time")
    files: list[FileRecord] = Field(default_factory=list, description="Captured files")

    @property
    def id(self) -> str:
        return self.timestamp

    @property
    def total_size(self) -> int:
        return sum(record.size for record in self.files)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2) + "\n"


class SnapshotResult(BaseModel):
    """Outcome of a snapshot attempt."""

    success: bool = Field(..., description="True if the manifest was written")
    snapshot_id: str | None = Field(None, description="Snapshot id when successful")
    backup_path: str | None = Field(None, description="Backup directory when successful")
    files_backed_up: int = Field(0, description="Number of files copied")
    errors: list[str] = Field(default_factory=list, description="Errors that aborted the attempt")

    def __bool__(self) -> bool:
        return self.success
