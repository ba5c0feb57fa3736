"""Documentation scaffolding module for tmskit.

Manages the baseline documentation files a project carries:
- Version markers embedded in managed files
- Bundled baseline templates and scope presets
- Classification of installed files against their baselines
"""

from .classifier import classify, classify_project, group_by_status, select_eligible
from .markers import extract_version, inject_version_marker, strip_version_marker
from .templates import (
    SCOPE_PRESETS,
    ScopePreset,
    baseline_path,
    get_scope_preset,
    get_templates_dir,
    install_baseline,
    list_baselines,
    render_baseline,
    resolve_scope_files,
)

__all__ = [
    # Classifier
    "classify",
    "classify_project",
    "group_by_status",
    "select_eligible",
    # Markers
    "extract_version",
    "inject_version_marker",
    "strip_version_marker",
    # Templates
    "SCOPE_PRESETS",
    "ScopePreset",
    "baseline_path",
    "get_scope_preset",
    "get_templates_dir",
    "install_baseline",
    "list_baselines",
    "render_baseline",
    "resolve_scope_files",
]
