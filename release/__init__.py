"""Version bumping and documentation version sync."""

from .sync import SyncReport, VersionPattern, check_changelog, sync_versions
from .versioning import (
    BumpKind,
    SemVer,
    bump_version,
    is_newer,
    parse_version,
    read_package_version,
    write_package_version,
)

__all__ = [
    "SyncReport",
    "VersionPattern",
    "check_changelog",
    "sync_versions",
    "BumpKind",
    "SemVer",
    "bump_version",
    "is_newer",
    "parse_version",
    "read_package_version",
    "write_package_version",
]
