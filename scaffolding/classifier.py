"""File-state classifier.

Decides, per managed file, whether an automated upgrade is safe. The check
is deliberately plain: after removing the version marker, a file either
equals its baseline byte for byte or it counts as customized.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from schemas.migration import FileMigration, MigrationStatus

from .markers import extract_version, strip_version_marker
from .templates import baseline_path

logger = logging.getLogger(__name__)


def classify(
    file_path: Path | str,
    baseline_template_path: Path | str | None,
    target_version: str,
    relative_path: str | None = None,
) -> FileMigration:
    """Classify one file against its baseline template.

    Args:
        file_path: Absolute path of the managed file.
        baseline_template_path: Baseline the file was generated from. None or
            a missing path means the comparison target is unknown.
        target_version: Version the project is moving to.
        relative_path: Path reported in the result (defaults to the file name).

    Returns:
        FileMigration with the status and a human readable reason.
    """
    path = Path(file_path)
    display = relative_path or path.name

    def result(status: MigrationStatus, current: str | None, reason: str | None) -> FileMigration:
        return FileMigration(
            path=display,
            status=status,
            current_version=current,
            target_version=target_version,
            reason=reason,
        )

    if not path.is_file():
        return result(MigrationStatus.MISSING, None, "File not installed")

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read %s: %s", path, e)
        return result(MigrationStatus.CUSTOMIZED, None, f"Unreadable file: {e}")

    current_version = extract_version(content)
    if current_version is None:
        return result(MigrationStatus.CUSTOMIZED, None, "Pre-versioned file, needs manual review")

    if current_version == target_version:
        return result(MigrationStatus.LATEST, current_version, None)

    # Unknown baseline: never overwrite silently
    if baseline_template_path is None or not Path(baseline_template_path).is_file():
        return result(MigrationStatus.CUSTOMIZED, current_version, "Baseline template not found")

    try:
        baseline = Path(baseline_template_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read baseline %s: %s", baseline_template_path, e)
        return result(MigrationStatus.CUSTOMIZED, current_version, "Baseline template unreadable")

    if strip_version_marker(content) == strip_version_marker(baseline):
        return result(MigrationStatus.OUTDATED, current_version, "Template update available")
    return result(MigrationStatus.CUSTOMIZED, current_version, "File has custom changes")


def classify_project(
    project_root: Path,
    files: Iterable[str],
    templates_dir: Path,
    target_version: str,
) -> list[FileMigration]:
    """Classify every managed file of a project."""
    migrations = []
    for relative in files:
        migrations.append(
            classify(
                project_root / relative,
                baseline_path(relative, templates_dir),
                target_version,
                relative_path=relative,
            )
        )
    return migrations


def select_eligible(
    migrations: Iterable[FileMigration],
    force: bool = False,
    include_missing: bool = False,
) -> list[FileMigration]:
    """Pick the files an upgrade is allowed to write.

    OUTDATED files are always eligible, CUSTOMIZED files only with ``force``,
    MISSING files only with ``include_missing``. LATEST files never are.
    """
    allowed = {MigrationStatus.OUTDATED}
    if force:
        allowed.add(MigrationStatus.CUSTOMIZED)
    if include_missing:
        allowed.add(MigrationStatus.MISSING)
    return [m for m in migrations if m.status in allowed]


def group_by_status(migrations: Iterable[FileMigration]) -> dict[MigrationStatus, list[FileMigration]]:
    grouped: dict[MigrationStatus, list[FileMigration]] = {status: [] for status in MigrationStatus}
    for migration in migrations:
        grouped[migration.status].append(migration)
    return grouped
