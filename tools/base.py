"""External command runner interface.

The release core never spawns processes itself; it calls a runner. A run
either returns a result or raises ``CommandError``. With ``check=True`` a
non-zero exit code also raises.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from orchestrator.errors import TmsError


@dataclass
class CommandResult:
    """Result of an external command."""

    command: list[str]
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def __bool__(self) -> bool:
        return self.success


class CommandError(TmsError):
    """An external command could not run or exited non-zero."""

    def __init__(
        self,
        command: Sequence[str],
        message: str,
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(
            message,
            exit_code=1,
            context={"command": " ".join(command)},
        )
        self.command = list(command)
        self.returncode = exit_code
        self.stderr = stderr


class CommandRunner(ABC):
    """Synchronous "execute and capture" abstraction.

    Timeouts and retries, where wanted, belong to implementations of this
    interface, never to the orchestrator.
    """

    name: str = "runner"

    @abstractmethod
    def run(
        self,
        command: str | Sequence[str],
        cwd: Path | str | None = None,
        capture_output: bool = True,
        check: bool = True,
    ) -> CommandResult:
        """Run a command.

        Args:
            command: Argument list, or a string split with shell rules
            cwd: Working directory
            capture_output: Capture stdout/stderr instead of inheriting them
            check: Raise CommandError on a non-zero exit code

        Returns:
            CommandResult with stdout and exit code
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
