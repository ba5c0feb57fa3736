"""Subprocess-backed command runner."""

import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import Sequence

from .base import CommandError, CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class ShellTool(CommandRunner):
    """Runs release tooling (git, npm, gh, ...) as subprocesses.

    Only commands in the allow list may run; anything else is rejected
    before a process is spawned.
    """

    name = "shell"

    # Commands that are allowed by default
    ALLOWED_COMMANDS = {
        # Version control
        "git",
        "gh",
        # JavaScript registries
        "npm",
        "pnpm",
        "yarn",
        "node",
        # Python registries
        "python",
        "python3",
        "twine",
        "uv",
        "hatch",
        "poetry",
        "flit",
    }

    def __init__(
        self,
        working_dir: Path | str | None = None,
        timeout: int | None = 600,
        allowed_commands: set[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        """Initialize shell tool.

        Args:
            working_dir: Default working directory for commands
            timeout: Timeout in seconds per command (None disables it)
            allowed_commands: Override allowed command set
            env: Extra environment variables for every command
        """
        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.timeout = timeout
        self.allowed_commands = allowed_commands or self.ALLOWED_COMMANDS
        self.env = env or {}

    def run(
        self,
        command: str | Sequence[str],
        cwd: Path | str | None = None,
        capture_output: bool = True,
        check: bool = True,
    ) -> CommandResult:
        parts = shlex.split(command) if isinstance(command, str) else list(command)
        if not parts:
            raise CommandError([], "Empty command")

        cmd_name = Path(parts[0]).name
        if cmd_name not in self.allowed_commands:
            raise CommandError(parts, f"Command not allowed: {cmd_name}")

        logger.debug("$ %s", shlex.join(parts))
        try:
            completed = subprocess.run(
                parts,
                cwd=Path(cwd) if cwd else self.working_dir,
                capture_output=capture_output,
                text=True,
                timeout=self.timeout,
                check=False,
                env={**os.environ, **self.env},
            )
        except subprocess.TimeoutExpired:
            raise CommandError(parts, f"Command timed out after {self.timeout}s") from None
        except FileNotFoundError:
            raise CommandError(parts, f"Command not found: {parts[0]}") from None
        except OSError as e:
            raise CommandError(parts, f"Failed to start {parts[0]}: {e}") from e

        result = CommandResult(
            command=parts,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
        )

        if check and not result.success:
            detail = result.stderr.strip() or result.stdout.strip()
            message = f"`{shlex.join(parts)}` exited with code {result.exit_code}"
            if detail:
                message += f": {detail[:500]}"
            raise CommandError(parts, message, exit_code=result.exit_code, stderr=result.stderr)

        return result
