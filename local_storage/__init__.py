"""Local storage module for tmskit.

Snapshots of project files under ``.tmskit/backups/`` used to restore a
project after a failed release or migration.
"""

from local_storage.snapshots import SnapshotManager, format_size

__all__ = ["SnapshotManager", "format_size"]
