"""Error taxonomy for release and migration runs.

Every error carries an exit code and optional context so the CLI can render
it consistently. Only ``PhaseExecutionError`` triggers a rollback; the
others either happen before any mutation or are collected while rolling back.
"""

from __future__ import annotations

from typing import Any


class TmsError(Exception):
    """Base class for all tmskit errors."""

    def __init__(
        self,
        message: str,
        exit_code: int = 1,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.context = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigError(TmsError):
    """Raised when tmskit.toml or the project layout is invalid."""


class VersionError(TmsError, ValueError):
    """Raised when a version string or bump request is invalid."""


class PreconditionError(TmsError):
    """Workspace is not in a state where the run may start.

    Raised before any mutation, so nothing needs to be rolled back.
    """


class SnapshotError(TmsError):
    """A snapshot could not be created or read."""


class PhaseExecutionError(TmsError):
    """A mutating phase failed."""

    def __init__(
        self,
        phase: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, exit_code=1, context=context)
        self.phase = phase

    def __str__(self) -> str:
        return f"{self.phase}: {self.message}"

    def __repr__(self) -> str:
        return f"PhaseExecutionError({self.phase!r})"


class CompensationError(TmsError):
    """A rollback step failed. Logged and collected, never escalated."""

    def __init__(
        self,
        step: str,
        message: str,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message, exit_code=1, context={"step": step})
        self.step = step
        self.recovery_hint = recovery_hint

    def __str__(self) -> str:
        return f"{self.step}: {self.message}"


class IrrecoverableStateWarning(TmsError):
    """A failure happened after a step that cannot be undone.

    Example: the package was already published to the registry when a later
    step failed. Local state is rolled back but the published artifact may
    need a follow-up release.
    """

    def __init__(self, steps: list[str]) -> None:
        joined = ", ".join(steps)
        super().__init__(
            f"Failure occurred after irreversible step(s): {joined}. "
            "Published artifacts were not rolled back and may need a follow-up action.",
            exit_code=1,
            context={"irreversible_steps": joined},
        )
        self.steps = list(steps)


def format_error(error: BaseException) -> str:
    """Format an error for display, appending its context as key=value lines."""
    if isinstance(error, TmsError):
        message = error.message
        if error.context:
            lines = [f"   {key}={value}" for key, value in error.context.items()]
            message += "\n" + "\n".join(lines)
        return message
    return str(error) or error.__class__.__name__
