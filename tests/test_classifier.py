"""Tests for version markers, baselines and the file-state classifier."""

from pathlib import Path

import pytest

from scaffolding.classifier import classify, classify_project, group_by_status, select_eligible
from scaffolding.markers import extract_version, inject_version_marker, strip_version_marker
from scaffolding.templates import (
    BUNDLED_BASELINES_DIR,
    SCOPE_PRESETS,
    install_baseline,
    list_baselines,
    render_baseline,
    resolve_scope_files,
)
from schemas.migration import MigrationStatus

BASELINE = "# Next Tasks\n\n## Active Sprint\n\n- [ ] First task\n"


@pytest.fixture
def baseline(tmp_path: Path) -> Path:
    path = tmp_path / "templates" / "NEXT-TASKS.md"
    path.parent.mkdir()
    path.write_text(BASELINE, encoding="utf-8")
    return path


def write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


class TestMarkers:
    def test_extract_version(self):
        assert extract_version("text\n<!-- @tmskit-version 2.5.0 -->\n") == "2.5.0"

    def test_extract_prerelease_version(self):
        assert extract_version("<!-- @tmskit-version 2.6.0-beta.1 -->") == "2.6.0-beta.1"

    def test_no_marker(self):
        assert extract_version("# Hand written\n") is None

    def test_strip_removes_marker_and_trims(self):
        assert strip_version_marker("\n# Title\n\n<!-- @tmskit-version 2.5.0 -->\n") == "# Title"

    def test_inject_replaces_existing_marker(self):
        content = inject_version_marker("# Title\n\n<!-- @tmskit-version 2.5.0 -->\n", "2.6.0")
        assert content == "# Title\n\n<!-- @tmskit-version 2.6.0 -->\n"
        assert content.count("@tmskit-version") == 1


class TestClassify:
    def test_missing_file(self, tmp_path: Path, baseline: Path):
        result = classify(tmp_path / "NEXT-TASKS.md", baseline, "2.5.1")
        assert result.status == MigrationStatus.MISSING
        assert result.current_version is None

    def test_no_marker_is_customized(self, tmp_path: Path, baseline: Path):
        path = write(tmp_path / "NEXT-TASKS.md", BASELINE)
        result = classify(path, baseline, "2.5.1")
        assert result.status == MigrationStatus.CUSTOMIZED
        assert "Pre-versioned" in result.reason

    def test_marker_matches_target_is_latest(self, tmp_path: Path, baseline: Path):
        path = write(tmp_path / "NEXT-TASKS.md", BASELINE + "\n<!-- @tmskit-version 2.5.1 -->\n")
        result = classify(path, baseline, "2.5.1")
        assert result.status == MigrationStatus.LATEST
        assert result.current_version == "2.5.1"

    def test_unchanged_file_behind_target_is_outdated(self, tmp_path: Path, baseline: Path):
        path = write(tmp_path / "NEXT-TASKS.md", BASELINE + "\n<!-- @tmskit-version 2.5.0 -->\n")
        result = classify(path, baseline, "2.5.1")
        assert result.status == MigrationStatus.OUTDATED
        assert result.current_version == "2.5.0"
        assert result.safe_to_overwrite

    def test_user_edits_are_customized(self, tmp_path: Path, baseline: Path):
        path = write(
            tmp_path / "NEXT-TASKS.md",
            BASELINE + "- [ ] My own task\n\n<!-- @tmskit-version 2.5.0 -->\n",
        )
        result = classify(path, baseline, "2.5.1")
        assert result.status == MigrationStatus.CUSTOMIZED
        assert result.reason == "File has custom changes"

    def test_whitespace_only_difference_at_edges_is_outdated(self, tmp_path: Path, baseline: Path):
        path = write(tmp_path / "NEXT-TASKS.md", "\n\n" + BASELINE + "\n\n<!-- @tmskit-version 2.5.0 -->\n\n")
        assert classify(path, baseline, "2.5.1").status == MigrationStatus.OUTDATED

    def test_missing_baseline_fails_closed(self, tmp_path: Path):
        path = write(tmp_path / "NEXT-TASKS.md", BASELINE + "\n<!-- @tmskit-version 2.5.0 -->\n")
        result = classify(path, tmp_path / "nope.md", "2.5.1")
        assert result.status == MigrationStatus.CUSTOMIZED
        assert result.reason == "Baseline template not found"

    def test_baseline_with_its_own_marker(self, tmp_path: Path, baseline: Path):
        write(baseline, BASELINE + "\n<!-- @tmskit-version 2.4.0 -->\n")
        path = write(tmp_path / "NEXT-TASKS.md", BASELINE + "\n<!-- @tmskit-version 2.5.0 -->\n")
        assert classify(path, baseline, "2.5.1").status == MigrationStatus.OUTDATED


class TestProjectClassification:
    def test_classify_project_and_select(self, tmp_path: Path):
        version = "2.6.0"
        # Outdated: rendered from the bundled baseline for an older version
        install_baseline("NEXT-TASKS.md", tmp_path, "2.5.0")
        # Latest
        install_baseline("CLAUDE.md", tmp_path, version)
        # Customized
        custom = tmp_path / ".github" / "copilot-instructions.md"
        custom.parent.mkdir()
        custom.write_text("# Mine\n\n<!-- @tmskit-version 2.5.0 -->\n", encoding="utf-8")

        files = resolve_scope_files("standard")
        migrations = classify_project(tmp_path, files, BUNDLED_BASELINES_DIR, version)
        grouped = group_by_status(migrations)

        assert [m.path for m in grouped[MigrationStatus.OUTDATED]] == ["NEXT-TASKS.md"]
        assert [m.path for m in grouped[MigrationStatus.LATEST]] == ["CLAUDE.md"]
        assert [m.path for m in grouped[MigrationStatus.CUSTOMIZED]] == [".github/copilot-instructions.md"]
        assert len(grouped[MigrationStatus.MISSING]) == len(files) - 3

        assert [m.path for m in select_eligible(migrations)] == ["NEXT-TASKS.md"]
        forced = [m.path for m in select_eligible(migrations, force=True)]
        assert forced == ["NEXT-TASKS.md", ".github/copilot-instructions.md"]
        with_missing = select_eligible(migrations, include_missing=True)
        assert "CLAUDE.md" not in [m.path for m in with_missing]
        assert len(with_missing) == 1 + len(grouped[MigrationStatus.MISSING])


class TestTemplates:
    def test_every_preset_file_has_a_bundled_baseline(self):
        bundled = set(list_baselines())
        for name, preset in SCOPE_PRESETS.items():
            assert set(preset.files) <= bundled, name

    def test_custom_scope_uses_configured_files(self):
        assert resolve_scope_files("custom", ["NEXT-TASKS.md"]) == ["NEXT-TASKS.md"]

    def test_unknown_scope(self):
        with pytest.raises(ValueError, match="Unknown scope"):
            resolve_scope_files("galactic")

    def test_render_stamps_marker(self):
        content = render_baseline("docs/core/PATTERNS.md", "2.6.0")
        assert extract_version(content) == "2.6.0"
        assert content.endswith("<!-- @tmskit-version 2.6.0 -->\n")
