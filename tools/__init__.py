"""Tools module for external commands.

Provides the runner abstraction and the wrappers built on it:
- Shell command runner (git, npm, gh, ...)
- Git operations (branch, tag, push, merge)
- Publish steps (registry and hosting releases)
"""

from .base import CommandError, CommandResult, CommandRunner
from .git_manager import GitManager, GitResult
from .publisher import CredentialCheck, Publisher, PublishStep
from .shell_tool import ShellTool

__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "GitManager",
    "GitResult",
    "CredentialCheck",
    "Publisher",
    "PublishStep",
    "ShellTool",
]
