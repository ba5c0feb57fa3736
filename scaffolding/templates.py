"""Baseline templates and scope presets.

Baselines are the pristine documentation files tmskit installs into a
project. They ship with the package under ``scaffolding/baselines/`` and can
be overridden with a custom templates directory. Each scope preset selects
which of them a project manages.
"""

from dataclasses import dataclass, field
from pathlib import Path

from .markers import inject_version_marker

BUNDLED_BASELINES_DIR = Path(__file__).parent / "baselines"


@dataclass(frozen=True)
class ScopePreset:
    """Set of documentation files managed for a project size."""

    name: str
    display_name: str
    description: str
    mandatory_files: list[str] = field(default_factory=list)
    optional_files: list[str] = field(default_factory=list)

    @property
    def files(self) -> list[str]:
        return [*self.mandatory_files, *self.optional_files]


_STANDARD_OPTIONAL = [
    "PROMPTS.md",
    "FUTURE-ENHANCEMENTS.md",
    "docs/core/ARCHITECTURE.md",
    "docs/core/PATTERNS.md",
    "docs/core/DOMAIN-LOGIC.md",
    "docs/core/DECISIONS.md",
    "docs/core/TROUBLESHOOTING.md",
]

_MANDATORY = [
    "NEXT-TASKS.md",
    "CLAUDE.md",
    ".github/copilot-instructions.md",
]

SCOPE_PRESETS: dict[str, ScopePreset] = {
    "nano": ScopePreset(
        name="nano",
        display_name="Nano",
        description="Minimal setup for scripts and small tools",
        mandatory_files=["NEXT-TASKS.md", "CLAUDE.md"],
    ),
    "standard": ScopePreset(
        name="standard",
        display_name="Standard",
        description="Complete setup for most products (recommended)",
        mandatory_files=list(_MANDATORY),
        optional_files=list(_STANDARD_OPTIONAL),
    ),
    "enterprise": ScopePreset(
        name="enterprise",
        display_name="Enterprise",
        description="Full suite for large, complex repositories",
        mandatory_files=list(_MANDATORY),
        optional_files=[
            *_STANDARD_OPTIONAL,
            "docs/core/GLOSSARY.md",
            "docs/core/SCHEMA.md",
        ],
    ),
    # File list comes from the project config
    "custom": ScopePreset(
        name="custom",
        display_name="Custom",
        description="Explicit list of files (advanced)",
    ),
}


def get_scope_preset(name: str) -> ScopePreset | None:
    """Get a scope preset by name."""
    return SCOPE_PRESETS.get(name)


def resolve_scope_files(scope: str, custom_files: list[str] | None = None) -> list[str]:
    """Return the project-relative files managed under a scope.

    Raises:
        ValueError: If the scope is unknown.
    """
    preset = get_scope_preset(scope)
    if preset is None:
        available = ", ".join(SCOPE_PRESETS)
        raise ValueError(f"Unknown scope: {scope}. Available: {available}")

    if scope == "custom":
        return list(custom_files or [])
    return preset.files


def get_templates_dir(override: str | Path | None = None) -> Path:
    """Get the directory holding baseline templates.

    Args:
        override: Custom templates directory (from config). Empty means bundled.

    Returns:
        Path to the templates directory
    """
    if override:
        return Path(override).expanduser().resolve()
    return BUNDLED_BASELINES_DIR


def baseline_path(relative_path: str, templates_dir: Path | None = None) -> Path:
    """Path of the baseline template for a managed file."""
    return (templates_dir or BUNDLED_BASELINES_DIR) / relative_path


def list_baselines(templates_dir: Path | None = None) -> list[str]:
    """List every baseline file, as project-relative POSIX paths."""
    root = templates_dir or BUNDLED_BASELINES_DIR
    if not root.is_dir():
        return []
    return sorted(
        path.relative_to(root).as_posix()
        for path in root.rglob("*")
        if path.is_file()
    )


def render_baseline(relative_path: str, version: str, templates_dir: Path | None = None) -> str:
    """Read a baseline and stamp it with the version marker.

    Raises:
        FileNotFoundError: If no baseline exists for the path.
    """
    content = baseline_path(relative_path, templates_dir).read_text(encoding="utf-8")
    if relative_path.endswith(".md"):
        content = inject_version_marker(content, version)
    return content


def install_baseline(
    relative_path: str,
    project_root: Path,
    version: str,
    templates_dir: Path | None = None,
) -> Path:
    """Write the rendered baseline into the project, creating parent directories."""
    destination = project_root / relative_path
    content = render_baseline(relative_path, version, templates_dir)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(content, encoding="utf-8")
    return destination
