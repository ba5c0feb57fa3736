"""Version markers embedded in managed documentation files.

A managed file carries a single hidden comment recording the template
version it was generated from::

    <!-- @tmskit-version 2.5.0 -->
"""

import re

MARKER_TOOL = "tmskit"

# Full semver including prerelease tags: 2.6.0, 2.6.0-beta.1, 3.0.0-rc.2
VERSION_PATTERN = r"\d+\.\d+\.\d+(?:-[0-9A-Za-z.]+)?"

MARKER_RE = re.compile(rf"<!-- @{MARKER_TOOL}-version ({VERSION_PATTERN}) -->")
MARKER_LINE_RE = re.compile(rf"<!-- @{MARKER_TOOL}-version {VERSION_PATTERN} -->\n?")


def format_marker(version: str) -> str:
    return f"<!-- @{MARKER_TOOL}-version {version} -->"


def extract_version(content: str) -> str | None:
    """Return the version recorded in the marker, or None for pre-versioned content."""
    match = MARKER_RE.search(content)
    return match.group(1) if match else None


def strip_version_marker(content: str) -> str:
    """Remove every marker and trim surrounding whitespace."""
    return MARKER_LINE_RE.sub("", content).strip()


def inject_version_marker(content: str, version: str) -> str:
    """Return content carrying exactly one marker for ``version``, appended at the end."""
    body = MARKER_LINE_RE.sub("", content).rstrip()
    return f"{body}\n\n{format_marker(version)}\n"
