"""Shared fixtures: a recording command runner and sample projects."""

import json
import shlex
from pathlib import Path
from typing import Sequence

import pytest

from tools.base import CommandError, CommandResult, CommandRunner

# Read-only commands a release issues before it changes anything
READ_ONLY_PREFIXES = (
    "git branch --show-current",
    "git status --porcelain",
    "git rev-parse",
    "git ls-remote",
    "npm whoami",
    "gh auth status",
)


class FakeRunner(CommandRunner):
    """Records every command and answers from canned responses.

    Responses and failures match on the start of the shell-joined command
    line; the longest matching prefix wins.
    """

    name = "fake"

    def __init__(self) -> None:
        self.commands: list[str] = []
        self._responses: dict[str, tuple[str, int]] = {}
        self._failures: dict[str, str] = {}
        self._raise_after: dict[str, type[BaseException]] = {}

    def respond(self, prefix: str, stdout: str = "", exit_code: int = 0) -> None:
        self._responses[prefix] = (stdout, exit_code)

    def fail_on(self, prefix: str, message: str = "simulated failure") -> None:
        self._failures[prefix] = message

    def raise_after(self, prefix: str, exception: type[BaseException] = KeyboardInterrupt) -> None:
        """Let the next matching command succeed, then raise ``exception`` once."""
        self._raise_after[prefix] = exception

    def _match(self, line: str, table: dict) -> str | None:
        matches = [prefix for prefix in table if line.startswith(prefix)]
        return max(matches, key=len) if matches else None

    def run(
        self,
        command: str | Sequence[str],
        cwd: Path | str | None = None,
        capture_output: bool = True,
        check: bool = True,
    ) -> CommandResult:
        parts = shlex.split(command) if isinstance(command, str) else list(command)
        line = shlex.join(parts)
        self.commands.append(line)

        failure = self._match(line, self._failures)
        if failure is not None:
            raise CommandError(parts, self._failures[failure], exit_code=1)

        stdout, exit_code = "", 0
        response = self._match(line, self._responses)
        if response is not None:
            stdout, exit_code = self._responses[response]

        result = CommandResult(command=parts, stdout=stdout, exit_code=exit_code)
        pending = self._match(line, self._raise_after)
        if pending is not None:
            raise self._raise_after.pop(pending)(f"raised after {line}")
        if check and exit_code != 0:
            raise CommandError(parts, f"`{line}` exited with code {exit_code}", exit_code=exit_code)
        return result

    def ran(self, prefix: str) -> bool:
        return any(line.startswith(prefix) for line in self.commands)

    def mutating_commands(self) -> list[str]:
        return [line for line in self.commands if not line.startswith(READ_ONLY_PREFIXES)]


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Runner for a clean checkout of main with no release leftovers."""
    runner = FakeRunner()
    runner.respond("git branch --show-current", "main\n")
    runner.respond("git status --porcelain", "")
    runner.respond("git rev-parse HEAD", "0123456789abcdef0123456789abcdef01234567\n")
    runner.respond("git rev-parse --verify --quiet refs/heads/", exit_code=1)
    runner.respond("git rev-parse --verify --quiet refs/tags/", exit_code=1)
    runner.respond("git ls-remote", "")
    return runner


@pytest.fixture
def release_project(tmp_path: Path) -> Path:
    """An npm project at version 2.5.0 with versioned documentation."""
    (tmp_path / "package.json").write_text(
        json.dumps({"name": "demo", "version": "2.5.0", "private": False}, indent=2) + "\n",
        encoding="utf-8",
    )
    (tmp_path / "README.md").write_text(
        "# Demo\n\n**Version**: v2.5.0\n",
        encoding="utf-8",
    )
    (tmp_path / "CLAUDE.md").write_text(
        "# Claude\n\nRules.\n\n<!-- @tmskit-version 2.5.0 -->\n",
        encoding="utf-8",
    )
    (tmp_path / "CHANGELOG.md").write_text(
        "# Changelog\n\n## [2.5.1] - 2026-01-15\n\n- Fixes\n\n## [2.5.0]\n",
        encoding="utf-8",
    )
    return tmp_path


def read_tree(root: Path) -> dict[str, bytes]:
    """Content of every file under root, excluding tmskit state."""
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file() and ".tmskit" not in path.relative_to(root).parts
    }
