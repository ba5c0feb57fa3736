"""Release workflow as a saga.

Preflight -> Snapshot -> LocalMutation -> VersionControl -> Publish -> Finalize

Each phase is a plain function of ``(context, env)``. Phases record every
branch, tag and publish they create on the context as soon as the command
succeeds, so compensation knows exactly what exists. A step that raises or
is interrupted still hands that context back through ``step_failed``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from local_storage.snapshots import SnapshotManager
from release.sync import check_changelog, sync_versions
from release.versioning import bump_version, is_newer, read_package_version, write_package_version
from schemas.transaction import ArtifactKind, Phase, TransactionContext
from settings.config import ReleaseConfig
from tools.base import CommandError, CommandRunner
from tools.git_manager import GitManager, GitResult
from tools.publisher import CredentialCheck, Publisher, PublishStep, parse_command

from .errors import CompensationError, PreconditionError, SnapshotError, TmsError
from .saga import (
    PhaseOrchestrator,
    PhaseResult,
    PhaseSpec,
    SagaResult,
    execution_failed,
    ok,
    precondition_failed,
    snapshot_failed,
    step_failed,
)

logger = logging.getLogger(__name__)

COMMIT_MESSAGE = """chore(release): v{version}

Release v{version}

Changes:
- Bump version to {version}
- Sync version across documentation
"""


@dataclass
class ReleaseEnv:
    """Collaborators and the release request, shared by all release phases."""

    git: GitManager
    publisher: Publisher
    snapshots: SnapshotManager
    config: ReleaseConfig
    bump: str = "patch"
    explicit_version: str | None = None
    keep_backups: int = 10


# Preflight


def preflight(ctx: TransactionContext, env: ReleaseEnv) -> PhaseResult:
    """Check the workspace and compute the target version. Mutates nothing."""
    main = env.config.main_branch
    root = Path(ctx.project_root)

    try:
        branch = env.git.get_current_branch()
        if branch != main:
            return precondition_failed(ctx, PreconditionError(
                f"Must be on {main} branch (currently on {branch or 'a detached HEAD'})",
                context={"fix": f"git checkout {main}"},
            ))

        status = env.git.status_porcelain()
        if status:
            changes = status.splitlines()
            return precondition_failed(ctx, PreconditionError(
                f"Workspace has {len(changes)} uncommitted change(s)",
                context={
                    "first": changes[0],
                    "fix": "commit or stash your changes",
                },
            ))
        logger.debug("Workspace is clean")

        failed = env.publisher.failed_credentials()
        if failed:
            return precondition_failed(ctx, PreconditionError(
                failed[0].hint or f"Credential check failed: {failed[0].name}",
                context={"checks": ", ".join(check.name for check in failed)},
            ))

        current = read_package_version(root / env.config.manifest)
        target = bump_version(current, env.bump, env.explicit_version)
        if not ctx.force and not is_newer(target, current):
            return precondition_failed(ctx, PreconditionError(
                f"Target version {target} is not newer than {current}",
                context={"fix": "choose a higher version or pass --force"},
            ))

        ctx = ctx.update(current_version=current, target_version=target)
        leftovers = _existing_release_artifacts(ctx, env)
        if leftovers:
            return precondition_failed(ctx, PreconditionError(
                "Artifacts from a previous or concurrent release run exist: " + ", ".join(leftovers),
                context={"fix": f"delete them (git branch -D {ctx.release_branch}; git tag -d {ctx.release_tag})"},
            ))

        if not check_changelog(root, target):
            if env.config.require_changelog and not ctx.force:
                return precondition_failed(ctx, PreconditionError(
                    f"CHANGELOG.md has no entry for [{target}]",
                ))
            logger.warning("CHANGELOG.md has no entry for [%s]", target)

        ctx = ctx.update(original_position=branch, original_commit=env.git.head_commit())

        pull = f"git pull {env.git.remote} {main}"
        if not ctx.is_dry_run:
            env.git.pull(main)
        ctx = ctx.with_action(pull)

    except TmsError as e:
        return precondition_failed(ctx, PreconditionError(e.message, context=e.context))

    logger.info("Releasing %s -> %s", ctx.current_version, ctx.target_version)
    return ok(ctx)


def _existing_release_artifacts(ctx: TransactionContext, env: ReleaseEnv) -> list[str]:
    branch, tag = ctx.release_branch, ctx.release_tag
    found = []
    if env.git.local_branch_exists(branch):
        found.append(f"local branch {branch}")
    if env.git.remote_branch_exists(branch):
        found.append(f"remote branch {env.git.remote}/{branch}")
    if env.git.local_tag_exists(tag):
        found.append(f"local tag {tag}")
    if env.git.remote_tag_exists(tag):
        found.append(f"remote tag {tag}")
    return found


# Snapshot


def release_files(config: ReleaseConfig) -> list[str]:
    """Every project-relative file a release may write."""
    files: list[str] = []
    for relative in [config.manifest, *config.snapshot_files, *config.sync_files]:
        if relative not in files:
            files.append(relative)
    return files


def snapshot(ctx: TransactionContext, env: ReleaseEnv) -> PhaseResult:
    root = Path(ctx.project_root)
    files = [root / relative for relative in release_files(env.config)]

    if ctx.is_dry_run:
        existing = sum(1 for path in files if path.is_file())
        return ok(ctx.with_action(f"snapshot {existing} file(s) to {env.snapshots.backups_dir}"))

    result = env.snapshots.create_snapshot(
        files,
        reason=f"Release v{ctx.target_version}",
        target_version=ctx.target_version or "",
    )
    if not result:
        return snapshot_failed(ctx, SnapshotError(
            "Could not create snapshot",
            context={"errors": "; ".join(result.errors)},
        ))

    ctx = ctx.update(backup_id=result.snapshot_id)
    return ok(ctx.with_action(f"snapshot {result.files_backed_up} file(s) as {result.snapshot_id}"))


# LocalMutation


def local_mutation(ctx: TransactionContext, env: ReleaseEnv) -> PhaseResult:
    """Write the new version into the manifest and sync it into the docs."""
    root = Path(ctx.project_root)
    target = ctx.target_version or ""
    manifest = env.config.manifest

    try:
        if not ctx.is_dry_run:
            write_package_version(root / manifest, target)
        ctx = ctx.with_action(f"set {manifest} version {ctx.current_version} -> {target}")

        report = sync_versions(root, target, env.config.sync_files, write=not ctx.is_dry_run)
    except OSError as e:
        return execution_failed(ctx, Phase.LOCAL_MUTATION, str(e))
    except (Exception, KeyboardInterrupt) as e:
        return step_failed(ctx, Phase.LOCAL_MUTATION, e)

    for relative in report.changed_files:
        ctx = ctx.with_action(f"sync version in {relative}")
    return ok(ctx)


# VersionControl


def version_control(ctx: TransactionContext, env: ReleaseEnv) -> PhaseResult:
    """Branch, commit, tag and push. Each artifact is recorded once it exists."""
    git = env.git
    target = ctx.target_version or ""
    branch, tag = ctx.release_branch, ctx.release_tag

    steps = [
        (f"git checkout -b {branch}", lambda: git.create_branch(branch), (ArtifactKind.LOCAL_BRANCH, branch)),
        ("git add -A", git.stage_all, None),
        (f"git commit -F <message> ({tag})", lambda: git.commit(COMMIT_MESSAGE.format(version=target)),
         (ArtifactKind.COMMIT, branch)),
        (f"git tag -a {tag}", lambda: git.tag(tag, f"Release {tag}"), (ArtifactKind.LOCAL_TAG, tag)),
        (f"git push -u {git.remote} {branch}", lambda: git.push_branch(branch), (ArtifactKind.REMOTE_BRANCH, branch)),
        (f"git push {git.remote} {tag}", lambda: git.push_tag(tag), (ArtifactKind.REMOTE_TAG, tag)),
    ]

    for description, action, artifact in steps:
        if not ctx.is_dry_run:
            try:
                action()
            except (Exception, KeyboardInterrupt) as e:
                return step_failed(ctx, Phase.VERSION_CONTROL, e, step=description)
            if artifact:
                ctx = ctx.with_artifact(*artifact)
        ctx = ctx.with_action(description)

    return ok(ctx)


def compensate_version_control(ctx: TransactionContext, env: ReleaseEnv) -> list[CompensationError]:
    """Return to the starting branch and delete every branch and tag the run created."""
    if ctx.is_dry_run:
        return []

    git = env.git
    errors: list[CompensationError] = []

    def attempt(step: str, result: GitResult, hint: str) -> None:
        if result.success:
            logger.info("Rollback: %s", step)
        else:
            errors.append(CompensationError(step, result.message, recovery_hint=hint))

    attempt("Discard working tree changes", git.reset_hard("HEAD"), "git reset --hard HEAD")
    if ctx.original_position:
        attempt(
            f"Check out {ctx.original_position}",
            git.checkout_safe(ctx.original_position),
            f"git checkout {ctx.original_position}",
        )
    refs = _created_refs(ctx, env)
    for name in refs[ArtifactKind.LOCAL_BRANCH]:
        attempt(f"Delete local branch {name}", git.delete_local_branch(name), f"git branch -D {name}")
    for name in refs[ArtifactKind.LOCAL_TAG]:
        attempt(f"Delete local tag {name}", git.delete_local_tag(name), f"git tag -d {name}")
    for name in refs[ArtifactKind.REMOTE_BRANCH]:
        attempt(
            f"Delete remote branch {name}",
            git.delete_remote_branch(name),
            f"git push {git.remote} --delete {name}",
        )
    for name in refs[ArtifactKind.REMOTE_TAG]:
        attempt(
            f"Delete remote tag {name}",
            git.delete_remote_tag(name),
            f"git push {git.remote} --delete refs/tags/{name}",
        )
    return errors


def _created_refs(ctx: TransactionContext, env: ReleaseEnv) -> dict[ArtifactKind, list[str]]:
    """Recorded release refs, plus any that exist without a record.

    A step interrupted after its command ran leaves a ref nobody recorded.
    Preflight proved the release branch and tag did not exist, so finding
    one now means this run created it.
    """
    git = env.git
    branch, tag = ctx.release_branch, ctx.release_tag
    checks = [
        (ArtifactKind.LOCAL_BRANCH, branch, git.local_branch_exists),
        (ArtifactKind.LOCAL_TAG, tag, git.local_tag_exists),
        (ArtifactKind.REMOTE_BRANCH, branch, git.remote_branch_exists),
        (ArtifactKind.REMOTE_TAG, tag, git.remote_tag_exists),
    ]
    refs: dict[ArtifactKind, list[str]] = {}
    for kind, name, exists in checks:
        names = ctx.artifacts_of(kind)
        if name not in names:
            try:
                found = exists(name)
            except CommandError as e:
                logger.debug("Could not check %s %s: %s", kind.value, name, e.message)
                found = False
            if found:
                logger.info("Found unrecorded %s %s", kind.value, name)
                names.append(name)
        refs[kind] = names
    return refs


# Publish


def publish(ctx: TransactionContext, env: ReleaseEnv) -> PhaseResult:
    """Run the publish commands. Every success is irreversible."""
    target = ctx.target_version or ""

    for step in env.publisher.steps:
        description = step.describe(target)
        if not ctx.is_dry_run:
            try:
                env.publisher.publish(step, target)
            except (Exception, KeyboardInterrupt) as e:
                return step_failed(ctx, Phase.PUBLISH, e, step=step.name)
            ctx = ctx.with_artifact(step.artifact, f"{step.name}@{target}", irreversible=True)
            logger.info("Published %s %s", step.name, target)
        ctx = ctx.with_action(description)

    return ok(ctx)


def compensate_publish(ctx: TransactionContext, env: ReleaseEnv) -> list[CompensationError]:
    # Registry publishes cannot be taken back; the orchestrator reports them
    for step in ctx.irreversible_steps:
        logger.warning("Cannot undo %s", step)
    return []


# Finalize


def finalize(ctx: TransactionContext, env: ReleaseEnv) -> PhaseResult:
    """Merge the release branch into main and clean up."""
    git = env.git
    main = env.config.main_branch
    branch = ctx.release_branch

    if ctx.is_dry_run:
        for description in (
            f"git checkout {main}",
            f"git merge --no-ff {branch}",
            f"git branch -d {branch}",
            f"git push {git.remote} --delete {branch}",
            f"prune snapshots (keep {env.keep_backups})",
        ):
            ctx = ctx.with_action(description)
        return ok(ctx)

    try:
        git.checkout(main)
        ctx = ctx.with_action(f"git checkout {main}")
        git.merge_no_ff(branch, message=f"Merge {branch}")
        ctx = ctx.with_artifact(ArtifactKind.MERGE, branch).with_action(f"git merge --no-ff {branch}")
        ctx = _clean_up(ctx, env)
    except (Exception, KeyboardInterrupt) as e:
        return step_failed(ctx, Phase.FINALIZE, e)
    return ok(ctx)


def _clean_up(ctx: TransactionContext, env: ReleaseEnv) -> TransactionContext:
    git = env.git
    branch = ctx.release_branch

    # The release is complete once merged; cleanup failures are only warnings
    if ctx.has_artifact(ArtifactKind.LOCAL_BRANCH):
        result = git.delete_local_branch(branch)
        if result.success:
            ctx = ctx.without_artifact(ArtifactKind.LOCAL_BRANCH, branch).with_action(f"git branch -d {branch}")
        else:
            logger.warning(result.message)
    if ctx.has_artifact(ArtifactKind.REMOTE_BRANCH):
        result = git.delete_remote_branch(branch)
        if result.success:
            ctx = ctx.without_artifact(ArtifactKind.REMOTE_BRANCH, branch)
            ctx = ctx.with_action(f"git push {git.remote} --delete {branch}")
        else:
            logger.warning(result.message)

    try:
        pruned = env.snapshots.prune_snapshots(keep=max(1, env.keep_backups))
    except OSError as e:
        logger.warning("Could not prune snapshots: %s", e)
    else:
        ctx = ctx.with_action(f"prune snapshots (removed {pruned})")
    return ctx


def compensate_finalize(ctx: TransactionContext, env: ReleaseEnv) -> list[CompensationError]:
    """Undo the merge into main."""
    if ctx.is_dry_run or not ctx.has_artifact(ArtifactKind.MERGE) or not ctx.original_commit:
        return []
    result = env.git.reset_hard(ctx.original_commit)
    if result.success:
        return []
    return [CompensationError(
        f"Reset {env.config.main_branch} to {ctx.original_commit[:8]}",
        result.message,
        recovery_hint=f"git checkout {env.config.main_branch} && git reset --hard {ctx.original_commit}",
    )]


def build_release_phases(include_publish: bool = True) -> list[PhaseSpec]:
    phases = [
        PhaseSpec(Phase.PREFLIGHT, preflight),
        PhaseSpec(Phase.SNAPSHOT, snapshot),
        PhaseSpec(Phase.LOCAL_MUTATION, local_mutation),
        PhaseSpec(Phase.VERSION_CONTROL, version_control, compensate_version_control),
    ]
    if include_publish:
        phases.append(PhaseSpec(Phase.PUBLISH, publish, compensate_publish))
    phases.append(PhaseSpec(Phase.FINALIZE, finalize, compensate_finalize))
    return phases


def publish_steps_from_config(config: ReleaseConfig) -> list[PublishStep]:
    steps = []
    for command in config.publish_commands:
        argv = parse_command(command)
        if not argv:
            continue
        if argv[:3] == ["gh", "release", "create"]:
            steps.append(PublishStep("github-release", argv, ArtifactKind.GITHUB_RELEASE))
        else:
            steps.append(PublishStep(Path(argv[0]).name, argv, ArtifactKind.PUBLISHED))
    return steps


def credential_checks_from_config(config: ReleaseConfig) -> list[CredentialCheck]:
    hints = {
        "npm": "NPM authentication required. Run: npm login",
        "gh": "GitHub CLI authentication required. Run: gh auth login",
    }
    checks = []
    for command in config.credential_checks:
        argv = parse_command(command)
        if argv:
            name = Path(argv[0]).name
            checks.append(CredentialCheck(name, argv, hints.get(name, f"`{command}` failed")))
    return checks


def run_release(
    project_root: Path,
    runner: CommandRunner,
    config: ReleaseConfig,
    bump: str = "patch",
    explicit_version: str | None = None,
    dry_run: bool = False,
    force: bool = False,
    keep_backups: int = 10,
) -> SagaResult:
    """Wire the release phases to their collaborators and run them.

    Args:
        project_root: Repository root
        runner: Command runner for git and publish commands
        config: [release] configuration
        bump: patch, minor, major or stable
        explicit_version: Exact target version, overriding ``bump``
        dry_run: Report what would happen without changing anything
        force: Allow non-increasing versions and a missing CHANGELOG entry
        keep_backups: Snapshots kept after a successful release

    Returns:
        SagaResult of the run
    """
    root = Path(project_root).resolve()
    snapshots = SnapshotManager(root)
    publisher = Publisher(
        runner=runner,
        project_dir=root,
        steps=publish_steps_from_config(config),
        credential_checks=credential_checks_from_config(config),
    )
    env = ReleaseEnv(
        git=GitManager(runner, root, remote=config.remote),
        publisher=publisher,
        snapshots=snapshots,
        config=config,
        bump=bump,
        explicit_version=explicit_version,
        keep_backups=keep_backups,
    )
    orchestrator = PhaseOrchestrator(
        build_release_phases(include_publish=bool(publisher.steps)),
        env,
        snapshots,
    )
    context = TransactionContext(project_root=str(root), is_dry_run=dry_run, force=force)
    return orchestrator.run(context)
