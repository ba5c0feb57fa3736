"""Git manager for release branches, tags and merges."""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .base import CommandError, CommandResult, CommandRunner

logger = logging.getLogger(__name__)


@dataclass
class GitResult:
    """Result of a git operation that may fail without raising."""
    success: bool
    message: str
    output: str = ""


class GitManager:
    """Git operations used by the release phases.

    Every call goes through a ``CommandRunner``, so tests can substitute a
    recording fake. Mutating methods raise ``CommandError`` on failure;
    queries return plain values; ``delete_*`` and ``reset_hard`` are used
    during rollback and return a ``GitResult`` instead of raising.
    """

    def __init__(self, runner: CommandRunner, project_dir: Path, remote: str = "origin") -> None:
        """Initialize git manager.

        Args:
            runner: Command runner used for every git invocation
            project_dir: Repository working directory
            remote: Name of the remote to push to
        """
        self.runner = runner
        self.project_dir = Path(project_dir)
        self.remote = remote

    def _run_git(self, *args: str, check: bool = True) -> CommandResult:
        """Run a git command in the project directory.

        Args:
            *args: Git command arguments
            check: Whether to raise on non-zero exit

        Returns:
            CommandResult
        """
        return self.runner.run(["git", *args], cwd=self.project_dir, check=check)

    def _try_git(self, description: str, *args: str) -> GitResult:
        try:
            result = self._run_git(*args)
            return GitResult(success=True, message=description, output=result.stdout)
        except CommandError as e:
            return GitResult(success=False, message=f"Failed to {description}: {e.message}", output=e.stderr)

    # Queries

    def is_repo(self) -> bool:
        """Check if project directory is inside a git work tree."""
        try:
            result = self._run_git("rev-parse", "--is-inside-work-tree", check=False)
        except CommandError:
            return False
        return result.success and result.stdout.strip() == "true"

    def get_current_branch(self) -> str | None:
        """Get the current branch name, None when detached."""
        result = self._run_git("branch", "--show-current")
        return result.stdout.strip() or None

    def head_commit(self) -> str:
        return self._run_git("rev-parse", "HEAD").stdout.strip()

    def status_porcelain(self) -> str:
        """Uncommitted changes in porcelain format; empty when clean."""
        return self._run_git("status", "--porcelain").stdout.strip()

    def local_branch_exists(self, branch: str) -> bool:
        result = self._run_git("rev-parse", "--verify", "--quiet", f"refs/heads/{branch}", check=False)
        return result.success

    def local_tag_exists(self, tag: str) -> bool:
        result = self._run_git("rev-parse", "--verify", "--quiet", f"refs/tags/{tag}", check=False)
        return result.success

    def remote_branch_exists(self, branch: str) -> bool:
        result = self._run_git("ls-remote", "--heads", self.remote, branch, check=False)
        return result.success and bool(result.stdout.strip())

    def remote_tag_exists(self, tag: str) -> bool:
        result = self._run_git("ls-remote", "--tags", self.remote, tag, check=False)
        return result.success and bool(result.stdout.strip())

    # Mutations

    def pull(self, branch: str) -> CommandResult:
        return self._run_git("pull", self.remote, branch)

    def create_branch(self, branch_name: str) -> CommandResult:
        """Create and check out a new branch."""
        return self._run_git("checkout", "-b", branch_name)

    def checkout(self, ref: str) -> CommandResult:
        return self._run_git("checkout", ref)

    def stage_all(self) -> CommandResult:
        """Stage all changes for commit."""
        return self._run_git("add", "-A")

    def commit(self, message: str) -> CommandResult:
        """Create a commit, passing the message through a temporary file.

        Multi-line messages survive intact and no shell quoting is involved.
        """
        fd, message_path = tempfile.mkstemp(prefix="tmskit-commit-", suffix=".txt")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(message)
            return self._run_git("commit", "-F", message_path)
        finally:
            try:
                os.unlink(message_path)
            except OSError:
                logger.debug("Could not remove %s", message_path)

    def tag(self, tag_name: str, message: str) -> CommandResult:
        """Create an annotated tag."""
        return self._run_git("tag", "-a", tag_name, "-m", message)

    def push_branch(self, branch: str) -> CommandResult:
        return self._run_git("push", "-u", self.remote, branch)

    def push_tag(self, tag_name: str) -> CommandResult:
        return self._run_git("push", self.remote, tag_name)

    def merge_no_ff(self, branch: str, message: str | None = None) -> CommandResult:
        args = ["merge", "--no-ff", branch]
        if message:
            args += ["-m", message]
        return self._run_git(*args)

    # Compensation helpers (never raise)

    def reset_hard(self, ref: str = "HEAD") -> GitResult:
        return self._try_git(f"reset to {ref}", "reset", "--hard", ref)

    def checkout_safe(self, ref: str) -> GitResult:
        return self._try_git(f"check out {ref}", "checkout", ref)

    def delete_local_branch(self, branch: str) -> GitResult:
        return self._try_git(f"delete local branch {branch}", "branch", "-D", branch)

    def delete_local_tag(self, tag_name: str) -> GitResult:
        return self._try_git(f"delete local tag {tag_name}", "tag", "-d", tag_name)

    def delete_remote_branch(self, branch: str) -> GitResult:
        return self._try_git(f"delete remote branch {branch}", "push", self.remote, "--delete", branch)

    def delete_remote_tag(self, tag_name: str) -> GitResult:
        return self._try_git(
            f"delete remote tag {tag_name}", "push", self.remote, "--delete", f"refs/tags/{tag_name}"
        )
