"""Project configuration (tmskit.toml plus environment overrides)."""

from .config import (
    CONFIG_FILE_NAME,
    BackupConfig,
    Config,
    LoggingConfig,
    ProjectConfig,
    ReleaseConfig,
    find_config_file,
    get_config,
    load_config,
    reload_config,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "BackupConfig",
    "Config",
    "LoggingConfig",
    "ProjectConfig",
    "ReleaseConfig",
    "find_config_file",
    "get_config",
    "load_config",
    "reload_config",
]
