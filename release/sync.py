"""Keep version strings in documentation aligned with the package manifest.

The package manifest is the single source of truth; every target file is
rewritten so its version strings match it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from scaffolding.markers import MARKER_TOOL, VERSION_PATTERN

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionPattern:
    """A regex whose group ``version`` holds a version to replace."""

    description: str
    regex: re.Pattern[str]


DEFAULT_PATTERNS = [
    VersionPattern(
        "Version metadata tag",
        re.compile(rf"(<!-- @{MARKER_TOOL}-version )(?P<version>{VERSION_PATTERN})( -->)"),
    ),
    VersionPattern(
        "Status section version",
        re.compile(rf"(\*\*Version\*\*: v?)(?P<version>{VERSION_PATTERN})"),
    ),
]


@dataclass
class FileChange:
    path: str
    description: str
    old_version: str
    new_version: str


@dataclass
class SyncReport:
    """What a sync run changed (or would change)."""

    version: str
    changes: list[FileChange] = field(default_factory=list)
    changed_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)

    @property
    def drift_detected(self) -> bool:
        return bool(self.changed_files)


def sync_file(
    path: Path,
    version: str,
    patterns: list[VersionPattern],
    write: bool = True,
) -> list[FileChange]:
    """Rewrite every pattern match in one file to ``version``."""
    content = path.read_text(encoding="utf-8")
    changes: list[FileChange] = []

    def replace(pattern: VersionPattern, match: re.Match[str]) -> str:
        old = match.group("version")
        if old != version:
            changes.append(FileChange(str(path), pattern.description, old, version))
        start, end = match.span("version")
        offset = match.start()
        text = match.group(0)
        return text[: start - offset] + version + text[end - offset :]

    updated = content
    for pattern in patterns:
        updated = pattern.regex.sub(lambda m, p=pattern: replace(p, m), updated)

    if changes and write:
        path.write_text(updated, encoding="utf-8")
    return changes


def sync_versions(
    project_root: Path,
    version: str,
    targets: list[str],
    patterns: list[VersionPattern] | None = None,
    write: bool = True,
) -> SyncReport:
    """Sync version strings in every target file.

    Args:
        project_root: Project root the targets are relative to.
        version: Version from the package manifest.
        targets: Project-relative files to sync. Missing files are skipped.
        patterns: Patterns to apply (defaults to marker and status version).
        write: False to only report drift.

    Returns:
        SyncReport listing changes and skipped files.
    """
    patterns = patterns or DEFAULT_PATTERNS
    report = SyncReport(version=version)

    for relative in targets:
        path = project_root / relative
        if not path.is_file():
            logger.debug("Sync target %s not found (skipping)", relative)
            report.skipped_files.append(relative)
            continue

        changes = sync_file(path, version, patterns, write=write)
        if changes:
            report.changed_files.append(relative)
            report.changes.extend(changes)
            for change in changes:
                logger.info("%s: %s %s -> %s", relative, change.description, change.old_version, change.new_version)

    return report


def check_changelog(project_root: Path, version: str, changelog: str = "CHANGELOG.md") -> bool:
    """Return True if the changelog has a ``## [version]`` heading."""
    path = project_root / changelog
    if not path.is_file():
        return False
    heading = re.compile(rf"^## \[{re.escape(version)}\]", re.MULTILINE)
    return bool(heading.search(path.read_text(encoding="utf-8")))
