"""Tests for the snapshot manager."""

import json
from datetime import datetime
from pathlib import Path

import pytest

import local_storage.snapshots as snapshots_module
from local_storage.snapshots import MANIFEST_NAME, SnapshotManager, format_size
from orchestrator.errors import SnapshotError


def fixed_clock(*moments: datetime):
    """Clock returning the given moments, repeating the last one."""
    remaining = list(moments)

    def clock() -> datetime:
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return clock


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "NEXT-TASKS.md").write_text("# Tasks\n", encoding="utf-8")
    (tmp_path / "docs" / "core").mkdir(parents=True)
    (tmp_path / "docs" / "core" / "PATTERNS.md").write_bytes(b"patterns\r\nwith crlf\n")
    return tmp_path


class TestCreateSnapshot:
    def test_round_trip_restores_identical_bytes(self, project: Path):
        manager = SnapshotManager(project)
        files = [project / "NEXT-TASKS.md", project / "docs/core/PATTERNS.md"]
        originals = {path: path.read_bytes() for path in files}

        result = manager.create_snapshot(files, reason="test", target_version="2.6.0")
        assert result.success
        assert result.files_backed_up == 2

        for path in files:
            path.write_text("changed", encoding="utf-8")

        assert manager.restore_snapshot(result.snapshot_id) == 2
        for path, content in originals.items():
            assert path.read_bytes() == content

    def test_mirrors_relative_structure(self, project: Path):
        manager = SnapshotManager(project)
        result = manager.create_snapshot([project / "docs/core/PATTERNS.md"], "test", "2.6.0")

        backup = Path(result.backup_path)
        assert backup.parent == project / ".tmskit" / "backups"
        assert (backup / "docs/core/PATTERNS.md").is_file()

    def test_missing_files_are_skipped(self, project: Path):
        manager = SnapshotManager(project)
        result = manager.create_snapshot(
            [project / "NEXT-TASKS.md", project / "DOES-NOT-EXIST.md"],
            reason="test",
            target_version="2.6.0",
        )
        assert result.success
        assert result.files_backed_up == 1
        assert result.errors == []

    def test_manifest_uses_camel_case_keys(self, project: Path):
        manager = SnapshotManager(project)
        result = manager.create_snapshot([project / "NEXT-TASKS.md"], "Migration to v2.6.0", "2.6.0")

        data = json.loads((Path(result.backup_path) / MANIFEST_NAME).read_text(encoding="utf-8"))
        assert data["timestamp"] == result.snapshot_id
        assert data["version"] == "2.6.0"
        assert data["reason"] == "Migration to v2.6.0"
        assert data["projectRoot"] == str(project.resolve())
        assert data["files"][0]["relativePath"] == "NEXT-TASKS.md"
        assert data["files"][0]["originalPath"] == str((project / "NEXT-TASKS.md").resolve())
        assert data["files"][0]["size"] == len("# Tasks\n")

    def test_file_outside_root_fails_without_manifest(self, project: Path, tmp_path_factory):
        outside = tmp_path_factory.mktemp("elsewhere") / "secret.md"
        outside.write_text("x", encoding="utf-8")
        manager = SnapshotManager(project)

        result = manager.create_snapshot([project / "NEXT-TASKS.md", outside], "test", "2.6.0")

        assert not result.success
        assert "outside the project root" in result.errors[0]
        assert manager.list_snapshots() == []

    def test_copy_failure_leaves_no_manifest(self, project: Path, monkeypatch):
        manager = SnapshotManager(project)
        real_copy = snapshots_module.shutil.copy2
        calls = []

        def flaky_copy(src, dst, *args, **kwargs):
            calls.append(src)
            if len(calls) == 2:
                raise OSError("disk full")
            return real_copy(src, dst, *args, **kwargs)

        monkeypatch.setattr(snapshots_module.shutil, "copy2", flaky_copy)

        result = manager.create_snapshot(
            [project / "NEXT-TASKS.md", project / "docs/core/PATTERNS.md"],
            reason="test",
            target_version="2.6.0",
        )

        assert not result.success
        assert result.snapshot_id is None
        assert "disk full" in result.errors[0]
        assert manager.list_snapshots() == []
        assert not any(manager.backups_dir.iterdir())

    def test_same_second_gets_suffix(self, project: Path):
        moment = datetime(2026, 1, 15, 14, 30, 22)
        manager = SnapshotManager(project, clock=fixed_clock(moment))

        first = manager.create_snapshot([project / "NEXT-TASKS.md"], "a", "2.6.0")
        second = manager.create_snapshot([project / "NEXT-TASKS.md"], "b", "2.6.0")

        assert first.snapshot_id == "2026-01-15_143022"
        assert second.snapshot_id == "2026-01-15_143022-01"


class TestRestoreSnapshot:
    def test_restore_is_idempotent(self, project: Path):
        manager = SnapshotManager(project)
        target = project / "NEXT-TASKS.md"
        result = manager.create_snapshot([target], "test", "2.6.0")

        target.write_text("edited", encoding="utf-8")
        manager.restore_snapshot(result.snapshot_id)
        after_first = target.read_bytes()
        manager.restore_snapshot(result.snapshot_id)

        assert target.read_bytes() == after_first == b"# Tasks\n"

    def test_recreates_deleted_files_and_parents(self, project: Path):
        manager = SnapshotManager(project)
        result = manager.create_snapshot([project / "docs/core/PATTERNS.md"], "test", "2.6.0")

        (project / "docs/core/PATTERNS.md").unlink()
        (project / "docs/core").rmdir()

        assert manager.restore_snapshot(result.snapshot_id) == 1
        assert (project / "docs/core/PATTERNS.md").read_bytes() == b"patterns\r\nwith crlf\n"

    def test_missing_backup_copy_is_skipped(self, project: Path):
        manager = SnapshotManager(project)
        result = manager.create_snapshot(
            [project / "NEXT-TASKS.md", project / "docs/core/PATTERNS.md"], "test", "2.6.0"
        )
        (Path(result.backup_path) / "NEXT-TASKS.md").unlink()

        assert manager.restore_snapshot(result.snapshot_id) == 1

    def test_unknown_snapshot_raises(self, project: Path):
        with pytest.raises(SnapshotError, match="Snapshot not found"):
            SnapshotManager(project).restore_snapshot("2020-01-01_000000")

    def test_path_traversal_id_rejected(self, project: Path):
        with pytest.raises(SnapshotError, match="Invalid snapshot id"):
            SnapshotManager(project).get_snapshot("../outside")


class TestListAndPrune:
    def _make(self, project: Path, count: int) -> SnapshotManager:
        moments = [datetime(2026, 1, day, 12, 0, 0) for day in range(1, count + 1)]
        manager = SnapshotManager(project, clock=fixed_clock(*moments))
        for index in range(count):
            manager.create_snapshot([project / "NEXT-TASKS.md"], f"run {index}", "2.6.0")
        return manager

    def test_list_is_newest_first(self, project: Path):
        manager = self._make(project, 3)
        ids = [m.id for m in manager.list_snapshots()]
        assert ids == ["2026-01-03_120000", "2026-01-02_120000", "2026-01-01_120000"]

    def test_invalid_manifests_are_skipped(self, project: Path):
        manager = self._make(project, 1)
        broken = manager.backups_dir / "2026-02-01_000000"
        broken.mkdir()
        (broken / MANIFEST_NAME).write_text("{not json", encoding="utf-8")
        (manager.backups_dir / "no-manifest").mkdir()

        assert [m.id for m in manager.list_snapshots()] == ["2026-01-01_120000"]

    def test_prune_keeps_newest(self, project: Path):
        manager = self._make(project, 4)

        assert manager.prune_snapshots(keep=2) == 2
        assert [m.id for m in manager.list_snapshots()] == ["2026-01-04_120000", "2026-01-03_120000"]

    def test_prune_nothing_to_delete(self, project: Path):
        manager = self._make(project, 2)
        assert manager.prune_snapshots(keep=5) == 0

    def test_prune_rejects_negative_keep(self, project: Path):
        with pytest.raises(ValueError):
            SnapshotManager(project).prune_snapshots(keep=-1)

    def test_snapshot_size(self, project: Path):
        manager = SnapshotManager(project)
        result = manager.create_snapshot(
            [project / "NEXT-TASKS.md", project / "docs/core/PATTERNS.md"], "test", "2.6.0"
        )
        expected = len(b"# Tasks\n") + len(b"patterns\r\nwith crlf\n")
        assert manager.snapshot_size(result.snapshot_id) == expected


@pytest.mark.parametrize(
    "num_bytes, expected",
    [(0, "0.0 B"), (512, "512.0 B"), (1536, "1.5 KB"), (5 * 1024 * 1024, "5.0 MB")],
)
def test_format_size(num_bytes, expected):
    assert format_size(num_bytes) == expected
