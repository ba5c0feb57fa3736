"""Schemas module for structured run state.

Provides Pydantic models for:
- Snapshot manifests and results
- File migration classifications
- Transaction context threaded through saga phases
"""

from .migration import FileMigration, MigrationStatus
from .snapshot import FileRecord, SnapshotManifest, SnapshotResult
from .transaction import Artifact, ArtifactKind, Phase, TransactionContext

__all__ = [
    # Migration
    "FileMigration",
    "MigrationStatus",
    # Snapshot
    "FileRecord",
    "SnapshotManifest",
    "SnapshotResult",
    # Transaction
    "Artifact",
    "ArtifactKind",
    "Phase",
    "TransactionContext",
]
