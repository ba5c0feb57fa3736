"""Configuration management for tmskit.

Loads configuration from:
1. tmskit.toml in the project root or a parent directory
2. Environment variables (overrides)
"""

import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from dotenv import load_dotenv

from orchestrator.errors import ConfigError

# Load .env file if present
load_dotenv()

CONFIG_FILE_NAME = "tmskit.toml"


@dataclass
class ProjectConfig:
    """Which documentation files the project manages."""

    scope: str = "standard"  # "nano", "standard", "enterprise", "custom"
    custom_files: list[str] = field(default_factory=list)  # Used when scope = "custom"
    templates_dir: str = ""  # Empty = bundled baselines


@dataclass
class ReleaseConfig:
    """Release workflow configuration."""

    main_branch: str = "main"
    remote: str = "origin"
    manifest: str = "package.json"  # or "pyproject.toml"

    # Files captured before the release mutates anything
    snapshot_files: list[str] = field(
        default_factory=lambda: [
            "package.json",
            "package-lock.json",
            "pnpm-lock.yaml",
            "yarn.lock",
            "pyproject.toml",
            "README.md",
            "CHANGELOG.md",
        ]
    )
    # Files whose version strings follow the manifest
    sync_files: list[str] = field(
        default_factory=lambda: [
            "README.md",
            "CLAUDE.md",
            "NEXT-TASKS.md",
            "docs/core/ARCHITECTURE.md",
        ]
    )
    # Read-only commands proving publish credentials. Empty list skips checks.
    credential_checks: list[str] = field(default_factory=lambda: ["npm whoami", "gh auth status"])
    # Irreversible publish commands, run in order. Placeholders: {version}, {tag}, {notes_file}
    publish_commands: list[str] = field(
        default_factory=lambda: [
            "npm publish",
            "gh release create {tag} --title {tag} --notes-file {notes_file}",
        ]
    )
    require_changelog: bool = False  # Missing CHANGELOG entry fails preflight instead of warning
    command_timeout: int = 600  # Seconds per external command


@dataclass
class BackupConfig:
    """Snapshot retention."""

    keep: int = 10


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Config:
    """Main configuration container."""

    project: ProjectConfig = field(default_factory=ProjectConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    backups: BackupConfig = field(default_factory=BackupConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source: Path | None = None  # File the config was loaded from

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: Path | None = None) -> "Config":
        """Create Config from dictionary.

        Raises:
            ConfigError: If a section has unknown keys or invalid values.
        """
        sections = {
            "project": ProjectConfig,
            "release": ReleaseConfig,
            "backups": BackupConfig,
            "logging": LoggingConfig,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ConfigError(
                f"Unknown section(s) in {CONFIG_FILE_NAME}: {', '.join(sorted(unknown))}",
                context={"file": source},
            )

        built: dict[str, Any] = {}
        for name, section_cls in sections.items():
            section_data = data.get(name, {})
            if not isinstance(section_data, dict):
                raise ConfigError(f"[{name}] must be a table", context={"file": source})
            try:
                built[name] = section_cls(**section_data)
            except TypeError as e:
                raise ConfigError(f"Invalid [{name}] section: {e}", context={"file": source}) from e

        config = cls(**built, source=source)
        config.validate()
        return config

    def validate(self) -> None:
        if self.backups.keep < 1:
            raise ConfigError("[backups] keep must be at least 1", context={"keep": self.backups.keep})
        if self.release.manifest not in ("package.json", "pyproject.toml"):
            raise ConfigError(
                "[release] manifest must be package.json or pyproject.toml",
                context={"manifest": self.release.manifest},
            )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("source")
        return data


def find_config_file(start: Path | str | None = None) -> Path | None:
    """Find tmskit.toml in the start directory or its parents.

    Returns:
        Path to tmskit.toml or None if not found.
    """
    current = Path(start).resolve() if start else Path.cwd()

    for directory in [current, *current.parents]:
        config_path = directory / CONFIG_FILE_NAME
        if config_path.exists():
            return config_path

    return None


def load_config(config_path: Path | str | None = None, start: Path | str | None = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Optional explicit path to tmskit.toml
        start: Directory to search from when no path is given

    Returns:
        Config object with merged settings.
    """
    # Start with defaults
    config_data: dict[str, Any] = {}
    source: Path | None = None

    # Load from file if available
    if config_path is None:
        config_path = find_config_file(start)

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            try:
                with open(path, "rb") as f:
                    config_data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid TOML in {path}: {e}", context={"file": path}) from e
            source = path

    # Apply environment variable overrides
    env_overrides = {
        "project": {
            "templates_dir": os.getenv("TMSKIT_TEMPLATES_DIR"),
        },
        "release": {
            "main_branch": os.getenv("TMSKIT_MAIN_BRANCH"),
            "remote": os.getenv("TMSKIT_REMOTE"),
        },
        "backups": {
            "keep": _int_or_none(os.getenv("TMSKIT_KEEP_BACKUPS")),
        },
        "logging": {
            "level": os.getenv("TMSKIT_LOG_LEVEL"),
        },
    }

    # Merge env overrides (only non-None values)
    for section, values in env_overrides.items():
        if section not in config_data:
            config_data[section] = {}
        for key, value in values.items():
            if value is not None:
                config_data[section][key] = value

    return Config.from_dict(config_data, source=source)


def _int_or_none(value: str | None) -> int | None:
    """Convert string to int, or return None."""
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


# Global config instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config object (loaded once, cached).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(start: Path | str | None = None) -> Config:
    """Force reload of configuration.

    Args:
        start: Project directory to search for tmskit.toml from

    Returns:
        Fresh Config object.
    """
    global _config
    _config = load_config(start=start)
    return _config
