"""Tests for version bumping, manifest I/O and documentation sync."""

import json
from pathlib import Path

import pytest

from orchestrator.errors import VersionError
from release.sync import check_changelog, sync_versions
from release.versioning import (
    bump_version,
    is_newer,
    parse_version,
    read_package_version,
    write_package_version,
)


class TestBumpVersion:
    @pytest.mark.parametrize(
        "current, kind, expected",
        [
            ("2.5.0", "patch", "2.5.1"),
            ("2.5.3", "minor", "2.6.0"),
            ("2.5.3", "major", "3.0.0"),
            ("2.6.0-beta.2", "stable", "2.6.0"),
            ("2.6.0-beta.2", "patch", "2.6.1"),
        ],
    )
    def test_bump(self, current, kind, expected):
        assert bump_version(current, kind) == expected

    def test_explicit_version_wins(self):
        assert bump_version("2.5.0", "major", explicit="2.5.7-rc.1") == "2.5.7-rc.1"

    def test_stable_requires_prerelease(self):
        with pytest.raises(VersionError, match="already stable"):
            bump_version("2.5.0", "stable")

    def test_unknown_bump(self):
        with pytest.raises(VersionError, match="Invalid bump type"):
            bump_version("2.5.0", "huge")

    @pytest.mark.parametrize("bad", ["2.5", "v2.5.0", "2.5.0-", "latest"])
    def test_invalid_version(self, bad):
        with pytest.raises(VersionError):
            parse_version(bad)

    def test_version_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_version("nope")


@pytest.mark.parametrize(
    "target, current, expected",
    [
        ("2.5.1", "2.5.0", True),
        ("2.6.0", "2.6.0-beta.3", True),
        ("2.6.0-beta.1", "2.6.0", False),
        ("2.5.0", "2.5.0", False),
        ("10.0.0", "9.9.9", True),
        ("3.0.0-beta.10", "3.0.0-beta.9", True),
        ("3.0.0-beta.9", "3.0.0-beta.10", False),
        ("3.0.0-rc.1", "3.0.0-beta.12", True),
        ("3.0.0-beta", "3.0.0-beta.1", False),
        ("3.0.0-beta.1", "3.0.0-1", True),
    ],
)
def test_is_newer(target, current, expected):
    assert is_newer(target, current) is expected


class TestManifest:
    def test_package_json_round_trip_keeps_other_fields(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text(json.dumps({"name": "demo", "version": "2.5.0", "bin": {"demo": "x.js"}}), encoding="utf-8")

        write_package_version(manifest, "2.5.1")

        data = json.loads(manifest.read_text(encoding="utf-8"))
        assert data == {"name": "demo", "version": "2.5.1", "bin": {"demo": "x.js"}}
        assert read_package_version(manifest) == "2.5.1"

    def test_pyproject_only_touches_project_table(self, tmp_path: Path):
        manifest = tmp_path / "pyproject.toml"
        manifest.write_text(
            '[tool.other]\nversion = "0.0.1"\n\n[project]\nname = "demo"\nversion = "2.5.0"\n\n[tool.x]\nversion = "9"\n',
            encoding="utf-8",
        )

        write_package_version(manifest, "2.6.0")

        content = manifest.read_text(encoding="utf-8")
        assert 'version = "0.0.1"' in content
        assert 'version = "9"' in content
        assert read_package_version(manifest) == "2.6.0"

    def test_missing_version_field(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"name": "demo"}', encoding="utf-8")
        with pytest.raises(VersionError, match="No version field"):
            read_package_version(manifest)

    def test_unreadable_manifest(self, tmp_path: Path):
        with pytest.raises(VersionError, match="Cannot read package manifest"):
            read_package_version(tmp_path / "package.json")


class TestSync:
    @pytest.fixture
    def docs(self, tmp_path: Path) -> Path:
        (tmp_path / "README.md").write_text("# Demo\n\n**Version**: v2.5.0\n", encoding="utf-8")
        (tmp_path / "CLAUDE.md").write_text("Rules\n\n<!-- @tmskit-version 2.5.0 -->\n", encoding="utf-8")
        (tmp_path / "NEXT-TASKS.md").write_text("**Version**: 2.5.1\n", encoding="utf-8")
        return tmp_path

    def test_sync_rewrites_drifted_files(self, docs: Path):
        report = sync_versions(docs, "2.5.1", ["README.md", "CLAUDE.md", "NEXT-TASKS.md", "MISSING.md"])

        assert report.changed_files == ["README.md", "CLAUDE.md"]
        assert report.skipped_files == ["MISSING.md"]
        assert (docs / "README.md").read_text(encoding="utf-8") == "# Demo\n\n**Version**: v2.5.1\n"
        assert "<!-- @tmskit-version 2.5.1 -->" in (docs / "CLAUDE.md").read_text(encoding="utf-8")

    def test_check_only_reports_drift(self, docs: Path):
        report = sync_versions(docs, "2.5.1", ["README.md"], write=False)

        assert report.drift_detected
        assert report.changes[0].old_version == "2.5.0"
        assert "v2.5.0" in (docs / "README.md").read_text(encoding="utf-8")

    def test_in_sync_is_a_no_op(self, docs: Path):
        assert not sync_versions(docs, "2.5.1", ["NEXT-TASKS.md"]).drift_detected


class TestChangelog:
    def test_entry_present(self, tmp_path: Path):
        (tmp_path / "CHANGELOG.md").write_text("# Changelog\n\n## [2.5.1] - 2026-01-15\n", encoding="utf-8")
        assert check_changelog(tmp_path, "2.5.1")
        assert not check_changelog(tmp_path, "2.5.10")

    def test_no_changelog(self, tmp_path: Path):
        assert not check_changelog(tmp_path, "2.5.1")
