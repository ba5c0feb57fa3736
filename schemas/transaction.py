"""Transaction schema.

The working state of one release or migration run. A context is frozen:
phase functions return an updated copy instead of mutating it, so the
orchestrator always holds the exact state each phase left behind.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Phase(str, Enum):
    """Saga phases, in execution order, plus the two terminal states."""

    PREFLIGHT = "preflight"
    SNAPSHOT = "snapshot"
    LOCAL_MUTATION = "local_mutation"
    VERSION_CONTROL = "version_control"
    PUBLISH = "publish"
    FINALIZE = "finalize"
    COMPLETED = "completed"
    ROLLED_BACK = "rolled_back"

    @property
    def title(self) -> str:
        return PHASE_TITLES[self]


PHASE_TITLES = {
    Phase.PREFLIGHT: "Preflight",
    Phase.SNAPSHOT: "Snapshot",
    Phase.LOCAL_MUTATION: "LocalMutation",
    Phase.VERSION_CONTROL: "VersionControl",
    Phase.PUBLISH: "Publish",
    Phase.FINALIZE: "Finalize",
    Phase.COMPLETED: "Completed",
    Phase.ROLLED_BACK: "RolledBack",
}


class ArtifactKind(str, Enum):
    """Things a run creates outside the working tree files."""

    LOCAL_BRANCH = "local_branch"
    REMOTE_BRANCH = "remote_branch"
    LOCAL_TAG = "local_tag"
    REMOTE_TAG = "remote_tag"
    COMMIT = "commit"
    MERGE = "merge"
    PUBLISHED = "published"
    GITHUB_RELEASE = "github_release"
    CREATED_FILE = "created_file"


class Artifact(BaseModel):
    """Record of something created during the run."""

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind
    name: str
    irreversible: bool = False


class TransactionContext(BaseModel):
    """Saga working state, threaded through every phase function."""

    model_config = ConfigDict(frozen=True)

    project_root: str = Field(..., description="Root of the project being mutated")
    phase_index: int = Field(0, description="Index of the phase currently executing")
    backup_id: str | None = Field(None, description="Snapshot taken by the Snapshot phase")
    created_artifacts: tuple[Artifact, ...] = Field(default=(), description="Artifacts created so far")
    original_position: str | None = Field(None, description="Branch checked out when the run started")
    original_commit: str | None = Field(None, description="HEAD commit when the run started")
    is_dry_run: bool = Field(False, description="Report only, perform no mutation")
    force: bool = Field(False, description="Allow overwriting customized files")

    current_version: str | None = Field(None, description="Version before the run")
    target_version: str | None = Field(None, description="Version the run moves to")
    eligible_files: tuple[str, ...] = Field(default=(), description="Project-relative files the run may overwrite")
    planned_actions: tuple[str, ...] = Field(default=(), description="What the run did, or would do in dry-run")

    def update(self, **changes: object) -> "TransactionContext":
        """Return a copy with the given fields replaced."""
        return self.model_copy(update=changes)

    def with_artifact(
        self,
        kind: ArtifactKind,
        name: str,
        irreversible: bool = False,
    ) -> "TransactionContext":
        artifact = Artifact(kind=kind, name=name, irreversible=irreversible)
        return self.model_copy(update={"created_artifacts": (*self.created_artifacts, artifact)})

    def without_artifact(self, kind: ArtifactKind, name: str) -> "TransactionContext":
        remaining = tuple(a for a in self.created_artifacts if not (a.kind == kind and a.name == name))
        return self.model_copy(update={"created_artifacts": remaining})

    def with_action(self, action: str) -> "TransactionContext":
        return self.model_copy(update={"planned_actions": (*self.planned_actions, action)})

    def has_artifact(self, kind: ArtifactKind) -> bool:
        return any(a.kind == kind for a in self.created_artifacts)

    def artifacts_of(self, kind: ArtifactKind) -> list[str]:
        return [a.name for a in self.created_artifacts if a.kind == kind]

    @property
    def irreversible_steps(self) -> list[str]:
        return [f"{a.kind.value}:{a.name}" for a in self.created_artifacts if a.irreversible]

    @property
    def release_branch(self) -> str | None:
        if not self.target_version:
            return None
        return f"release/v{self.target_version}"

    @property
    def release_tag(self) -> str | None:
        if not self.target_version:
            return None
        return f"v{self.target_version}"
