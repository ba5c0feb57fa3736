"""Semantic version parsing, bumping and package manifest I/O."""

from __future__ import annotations

import json
import re
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from orchestrator.errors import VersionError

SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.]+))?$")

# `version = "1.2.3"` inside the [project] table of pyproject.toml
_PYPROJECT_VERSION_RE = re.compile(r'^(version\s*=\s*)(["\'])([^"\']*)\2', re.MULTILINE)


class BumpKind(str, Enum):
    """How the next version is derived from the current one."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    STABLE = "stable"


@dataclass(frozen=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: str | None = None

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def sort_key(self) -> tuple:
        # A prerelease sorts before its release: 2.6.0-beta.1 < 2.6.0
        if not self.prerelease:
            return (self.major, self.minor, self.patch, 1, ())
        # Numeric identifiers compare as numbers and sort before alphanumeric ones
        identifiers = tuple(
            (0, int(part)) if part.isdigit() else (1, part) for part in self.prerelease.split(".")
        )
        return (self.major, self.minor, self.patch, 0, identifiers)

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        return f"{core}-{self.prerelease}" if self.prerelease else core


def parse_version(version: str) -> SemVer:
    """Parse ``major.minor.patch`` with an optional ``-prerelease`` suffix.

    Raises:
        VersionError: If the string is not a valid version.
    """
    match = SEMVER_RE.match(version.strip())
    if not match:
        raise VersionError(
            f"Invalid version format: {version}",
            context={"expected": "major.minor.patch or major.minor.patch-prerelease"},
        )
    major, minor, patch, prerelease = match.groups()
    return SemVer(int(major), int(minor), int(patch), prerelease)


def bump_version(current: str, kind: BumpKind | str, explicit: str | None = None) -> str:
    """Compute the target version.

    Args:
        current: Version currently in the package manifest.
        kind: patch, minor, major, or stable (promote a prerelease).
        explicit: Explicit target version; overrides ``kind`` when given.

    Returns:
        The target version string.
    """
    if explicit:
        return str(parse_version(explicit))

    try:
        kind = BumpKind(kind)
    except ValueError:
        valid = ", ".join(k.value for k in BumpKind)
        raise VersionError(f"Invalid bump type: {kind}. Valid options: {valid}") from None

    version = parse_version(current)

    if kind == BumpKind.STABLE:
        if not version.is_prerelease:
            raise VersionError(
                f"Cannot promote to stable: current version {current} is already stable. "
                "Use patch, minor, or major for stable versions."
            )
        return str(SemVer(version.major, version.minor, version.patch))
    if kind == BumpKind.MAJOR:
        return str(SemVer(version.major + 1, 0, 0))
    if kind == BumpKind.MINOR:
        return str(SemVer(version.major, version.minor + 1, 0))
    return str(SemVer(version.major, version.minor, version.patch + 1))


def read_package_version(manifest_path: Path) -> str:
    """Read the version field from package.json or pyproject.toml.

    Raises:
        VersionError: If the manifest cannot be read or has no version.
    """
    try:
        if manifest_path.suffix == ".toml":
            with open(manifest_path, "rb") as f:
                data = tomllib.load(f)
            version = data.get("project", {}).get("version")
        else:
            data = json.loads(manifest_path.read_text(encoding="utf-8"))
            version = data.get("version") if isinstance(data, dict) else None
    except (OSError, ValueError) as e:
        raise VersionError(f"Cannot read package manifest {manifest_path}: {e}") from e

    if not isinstance(version, str) or not version:
        raise VersionError(f"No version field in {manifest_path}")
    return version


def write_package_version(manifest_path: Path, version: str) -> None:
    """Write ``version`` into the package manifest, preserving everything else."""
    parse_version(version)

    if manifest_path.suffix == ".toml":
        content = manifest_path.read_text(encoding="utf-8")
        project_start = content.find("[project]")
        if project_start == -1:
            raise VersionError(f"No [project] table in {manifest_path}")
        next_table = content.find("\n[", project_start + len("[project]"))
        section_end = len(content) if next_table == -1 else next_table
        section = content[project_start:section_end]
        new_section, count = _PYPROJECT_VERSION_RE.subn(
            lambda m: f"{m.group(1)}{m.group(2)}{version}{m.group(2)}", section, count=1
        )
        if count == 0:
            raise VersionError(f"No version field in [project] of {manifest_path}")
        manifest_path.write_text(content[:project_start] + new_section + content[section_end:], encoding="utf-8")
        return

    data = json.loads(manifest_path.read_text(encoding="utf-8"))
    data["version"] = version
    manifest_path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def is_newer(target: str, current: str) -> bool:
    """True if ``target`` sorts after ``current``.

    Prerelease identifiers are compared field by field as semver orders
    them, so 3.0.0-beta.10 is newer than 3.0.0-beta.9.
    """
    return parse_version(target).sort_key() > parse_version(current).sort_key()
