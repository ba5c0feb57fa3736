"""Registry and hosting publish steps.

Publishing is the only irreversible part of a release. Steps are plain
command templates so projects can swap npm for another registry in
``tmskit.toml``. Placeholders ``{version}``, ``{tag}`` and ``{notes_file}``
are substituted per argument.
"""

import logging
import os
import shlex
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from schemas.transaction import ArtifactKind

from .base import CommandError, CommandResult, CommandRunner

logger = logging.getLogger(__name__)

RELEASE_NOTES_TEMPLATE = """Release {tag}

See CHANGELOG.md for full details.
"""


@dataclass(frozen=True)
class CredentialCheck:
    """Read-only command proving the user can publish."""

    name: str
    command: list[str]
    hint: str = ""


@dataclass(frozen=True)
class PublishStep:
    """One publish command and the artifact it creates."""

    name: str
    command: list[str]
    artifact: ArtifactKind = ArtifactKind.PUBLISHED

    def render(self, version: str, notes_file: str = "") -> list[str]:
        # Plain substitution: other braces (JSON arguments) pass through untouched
        values = {"{version}": version, "{tag}": f"v{version}", "{notes_file}": notes_file}
        rendered = []
        for part in self.command:
            for placeholder, value in values.items():
                part = part.replace(placeholder, value)
            rendered.append(part)
        return rendered

    @property
    def needs_notes(self) -> bool:
        return any("{notes_file}" in part for part in self.command)

    def describe(self, version: str) -> str:
        return shlex.join(self.render(version, notes_file="<release-notes>"))


DEFAULT_CREDENTIAL_CHECKS = [
    CredentialCheck("npm", ["npm", "whoami"], "NPM authentication required. Run: npm login"),
    CredentialCheck("gh", ["gh", "auth", "status"], "GitHub CLI authentication required. Run: gh auth login"),
]

DEFAULT_PUBLISH_STEPS = [
    PublishStep("npm", ["npm", "publish"], ArtifactKind.PUBLISHED),
    PublishStep(
        "github-release",
        ["gh", "release", "create", "{tag}", "--title", "{tag}", "--notes-file", "{notes_file}"],
        ArtifactKind.GITHUB_RELEASE,
    ),
]


def parse_command(command: str | list[str]) -> list[str]:
    """Accept a config value as either a shell-style string or an argument list."""
    if isinstance(command, str):
        return shlex.split(command)
    return [str(part) for part in command]


@dataclass
class Publisher:
    """Runs credential checks and publish steps through a command runner."""

    runner: CommandRunner
    project_dir: Path
    steps: list[PublishStep] = field(default_factory=lambda: list(DEFAULT_PUBLISH_STEPS))
    credential_checks: list[CredentialCheck] = field(default_factory=lambda: list(DEFAULT_CREDENTIAL_CHECKS))

    def failed_credentials(self) -> list[CredentialCheck]:
        """Return the credential checks that did not pass."""
        failed = []
        for check in self.credential_checks:
            try:
                result = self.runner.run(check.command, cwd=self.project_dir, check=False)
            except CommandError as e:
                logger.debug("Credential check %s could not run: %s", check.name, e)
                failed.append(check)
                continue
            if not result.success:
                failed.append(check)
        return failed

    def publish(self, step: PublishStep, version: str) -> CommandResult:
        """Run one publish step.

        Raises:
            CommandError: If the publish command fails.
        """
        if not step.needs_notes:
            return self.runner.run(step.render(version), cwd=self.project_dir)

        fd, notes_path = tempfile.mkstemp(prefix="tmskit-release-notes-", suffix=".md")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(RELEASE_NOTES_TEMPLATE.format(tag=f"v{version}"))
            return self.runner.run(step.render(version, notes_path), cwd=self.project_dir)
        finally:
            try:
                os.unlink(notes_path)
            except OSError:
                logger.debug("Could not remove %s", notes_path)
