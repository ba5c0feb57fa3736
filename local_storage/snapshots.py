"""Snapshot manager for tmskit.

Captures file sets into timestamped backup directories under
``<root>/.tmskit/backups/<snapshot_id>/`` and restores them. A snapshot is
only valid once its ``manifest.json`` exists, and the manifest is written
last, so a manifest on disk always describes a complete capture.
"""

from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from pydantic import ValidationError

from orchestrator.errors import SnapshotError
from schemas.snapshot import FileRecord, SnapshotManifest, SnapshotResult

logger = logging.getLogger(__name__)

STATE_DIR_NAME = ".tmskit"
BACKUPS_DIR_NAME = "backups"
MANIFEST_NAME = "manifest.json"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H%M%S"


class SnapshotManager:
    """Create, restore, list and prune file snapshots for one project.

    Example:
        >>> manager = SnapshotManager(Path("/my/project"))
        >>> result = manager.create_snapshot(
        ...     [Path("/my/project/package.json")],
        ...     reason="release v2.5.1",
        ...     target_version="2.5.1",
        ... )
        >>> manager.restore_snapshot(result.snapshot_id)
        1
    """

    def __init__(
        self,
        project_root: Path | str,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the manager.

        Args:
            project_root: Root directory of the project.
            clock: Source of the current time, used for snapshot ids.
        """
        self.project_root = Path(project_root).resolve()
        self._clock = clock

    @property
    def backups_dir(self) -> Path:
        return self.project_root / STATE_DIR_NAME / BACKUPS_DIR_NAME

    def snapshot_dir(self, snapshot_id: str) -> Path:
        """Return the directory of a snapshot, rejecting ids that escape the backups dir."""
        if not snapshot_id or "/" in snapshot_id or "\\" in snapshot_id or snapshot_id in (".", ".."):
            raise SnapshotError(f"Invalid snapshot id: {snapshot_id!r}")
        return self.backups_dir / snapshot_id

    def _new_snapshot_id(self) -> str:
        base = self._clock().strftime(TIMESTAMP_FORMAT)
        candidate = base
        counter = 1
        while (self.backups_dir / candidate).exists():
            candidate = f"{base}-{counter:02d}"
            counter += 1
        return candidate

    def create_snapshot(
        self,
        files: Iterable[Path | str],
        reason: str,
        target_version: str,
    ) -> SnapshotResult:
        """Copy the given files into a new snapshot.

        Files that do not exist are skipped. Any copy failure removes the
        partial snapshot directory and is reported in the result; no manifest
        is written in that case.

        Args:
            files: Absolute paths of the files to capture.
            reason: Why the snapshot is taken (e.g. "release v2.5.1").
            target_version: Version the run is moving to.

        Returns:
            SnapshotResult describing the capture.
        """
        snapshot_id = self._new_snapshot_id()
        backup_dir = self.backups_dir / snapshot_id
        records: list[FileRecord] = []

        try:
            backup_dir.mkdir(parents=True, exist_ok=False)
            self._ignore_state_dir()

            seen: set[str] = set()
            for raw_path in files:
                source = Path(raw_path)
                if not source.is_absolute():
                    raise ValueError(f"Snapshot paths must be absolute: {source}")
                if not source.is_file():
                    logger.debug("Skipping missing file %s", source)
                    continue

                relative = self._relative_to_root(source)
                if relative in seen:
                    continue
                seen.add(relative)

                destination = backup_dir / relative
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)

                records.append(
                    FileRecord(
                        relative_path=relative,
                        original_path=str(source.resolve()),
                        size=destination.stat().st_size,
                    )
                )

            manifest = SnapshotManifest(
                timestamp=snapshot_id,
                version=target_version,
                reason=reason,
                project_root=str(self.project_root),
                files=records,
            )
            self._write_manifest(backup_dir, manifest)

        except (OSError, ValueError) as e:
            logger.warning("Snapshot %s failed: %s", snapshot_id, e)
            shutil.rmtree(backup_dir, ignore_errors=True)
            return SnapshotResult(success=False, errors=[str(e)])

        logger.info("Created snapshot %s with %d file(s)", snapshot_id, len(records))
        return SnapshotResult(
            success=True,
            snapshot_id=snapshot_id,
            backup_path=str(backup_dir),
            files_backed_up=len(records),
        )

    def _ignore_state_dir(self) -> None:
        # Keep backups out of release commits made with `git add -A`
        gitignore = self.project_root / STATE_DIR_NAME / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text("*\n", encoding="utf-8")

    def _relative_to_root(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.project_root).as_posix()
        except ValueError:
            raise ValueError(f"File is outside the project root: {path}") from None

    def _write_manifest(self, backup_dir: Path, manifest: SnapshotManifest) -> None:
        tmp_path = backup_dir / f"{MANIFEST_NAME}.tmp"
        tmp_path.write_text(manifest.to_json(), encoding="utf-8")
        os.replace(tmp_path, backup_dir / MANIFEST_NAME)

    def _read_manifest(self, backup_dir: Path) -> SnapshotManifest:
        manifest_path = backup_dir / MANIFEST_NAME
        return SnapshotManifest.model_validate_json(manifest_path.read_text(encoding="utf-8"))

    def get_snapshot(self, snapshot_id: str) -> SnapshotManifest:
        """Load the manifest of a snapshot.

        Raises:
            SnapshotError: If the snapshot does not exist or its manifest is invalid.
        """
        backup_dir = self.snapshot_dir(snapshot_id)
        if not (backup_dir / MANIFEST_NAME).is_file():
            raise SnapshotError(f"Snapshot not found: {snapshot_id}")
        try:
            return self._read_manifest(backup_dir)
        except (OSError, ValidationError, ValueError) as e:
            raise SnapshotError(f"Snapshot manifest is unreadable: {snapshot_id}: {e}") from e

    def restore_snapshot(self, snapshot_id: str) -> int:
        """Copy every captured file back over its original path.

        Records whose backup copy has gone missing are skipped. Restoring the
        same snapshot again yields the same result.

        Args:
            snapshot_id: Snapshot to restore.

        Returns:
            Number of files restored.

        Raises:
            SnapshotError: If the manifest is missing or a file cannot be written.
        """
        manifest = self.get_snapshot(snapshot_id)
        backup_dir = self.snapshot_dir(snapshot_id)
        restored = 0

        for record in manifest.files:
            source = backup_dir / record.relative_path
            if not source.is_file():
                logger.warning("Backup copy missing, skipping %s", record.relative_path)
                continue

            destination = Path(record.original_path)
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
            except OSError as e:
                raise SnapshotError(
                    f"Failed to restore {record.relative_path}: {e}",
                    context={"snapshot": snapshot_id, "restored": restored},
                ) from e
            restored += 1

        logger.info("Restored %d file(s) from snapshot %s", restored, snapshot_id)
        return restored

    def list_snapshots(self) -> list[SnapshotManifest]:
        """List valid snapshots, newest first. Invalid manifests are skipped."""
        if not self.backups_dir.is_dir():
            return []

        manifests: list[SnapshotManifest] = []
        for entry in self.backups_dir.iterdir():
            if not entry.is_dir() or not (entry / MANIFEST_NAME).is_file():
                continue
            try:
                manifests.append(self._read_manifest(entry))
            except (OSError, ValidationError, ValueError):
                logger.debug("Skipping invalid snapshot manifest in %s", entry)
                continue

        return sorted(manifests, key=lambda m: m.timestamp, reverse=True)

    def prune_snapshots(self, keep: int = 10) -> int:
        """Delete all but the ``keep`` newest valid snapshots.

        Returns:
            Number of snapshots deleted.
        """
        if keep < 0:
            raise ValueError("keep must be zero or greater")

        deleted = 0
        for manifest in self.list_snapshots()[keep:]:
            backup_dir = self.backups_dir / manifest.timestamp
            if backup_dir.is_dir():
                shutil.rmtree(backup_dir)
                deleted += 1

        if deleted:
            logger.info("Pruned %d snapshot(s), kept %d", deleted, keep)
        return deleted

    def snapshot_size(self, snapshot_id: str) -> int:
        """Total size in bytes of the files captured by a snapshot."""
        return self.get_snapshot(snapshot_id).total_size


def format_size(num_bytes: int) -> str:
    """Format a byte count for display (e.g. "1.5 KB")."""
    units = ["B", "KB", "MB", "GB"]
    size = float(num_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.1f} {units[unit_index]}"
