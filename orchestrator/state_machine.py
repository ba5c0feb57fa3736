"""State machine for release and migration phase sequencing."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from schemas.transaction import Phase, TransactionContext

from .errors import TmsError


@dataclass
class Transition:
    """Defines a valid phase transition."""

    from_phase: Phase | None
    to_phase: Phase
    condition: Callable[[TransactionContext], bool] | None = None


@dataclass
class PhaseVisit:
    """One entry in the run history."""

    phase: Phase
    entered_at: datetime = field(default_factory=datetime.now)


class InvalidTransitionError(TmsError):
    """A phase set tried to move along an edge the machine does not allow."""


NON_TERMINAL_PHASES = [
    Phase.PREFLIGHT,
    Phase.SNAPSHOT,
    Phase.LOCAL_MUTATION,
    Phase.VERSION_CONTROL,
    Phase.PUBLISH,
    Phase.FINALIZE,
]

TERMINAL_PHASES = {Phase.COMPLETED, Phase.ROLLED_BACK}


class StateMachine:
    """Tracks where a run is and rejects out-of-order phases.

    Manages:
    - Valid phase transitions
    - Optional phases (migration has no version control or publish)
    - Run history
    """

    # Define valid transitions
    TRANSITIONS: list[Transition] = [
        # Happy path
        Transition(None, Phase.PREFLIGHT),
        Transition(Phase.PREFLIGHT, Phase.SNAPSHOT),
        Transition(Phase.SNAPSHOT, Phase.LOCAL_MUTATION),
        Transition(Phase.LOCAL_MUTATION, Phase.VERSION_CONTROL),
        Transition(Phase.VERSION_CONTROL, Phase.PUBLISH),
        Transition(Phase.PUBLISH, Phase.FINALIZE),
        Transition(Phase.FINALIZE, Phase.COMPLETED),
        # Skip version control and publish (migration)
        Transition(Phase.LOCAL_MUTATION, Phase.FINALIZE),
        # Skip publish when no publish steps are configured
        Transition(Phase.VERSION_CONTROL, Phase.FINALIZE),
        # Any failure rolls back
        *[Transition(phase, Phase.ROLLED_BACK) for phase in NON_TERMINAL_PHASES],
    ]

    def __init__(self) -> None:
        self.current: Phase | None = None
        self.history: list[PhaseVisit] = []

        # Build transition map for quick lookup
        self._transition_map: dict[Phase | None, list[Transition]] = {}
        for t in self.TRANSITIONS:
            self._transition_map.setdefault(t.from_phase, []).append(t)

    def can_transition(self, to_phase: Phase, context: TransactionContext | None = None) -> bool:
        """Check if transition to target phase is valid.

        Args:
            to_phase: Target phase
            context: Run context, for conditional transitions

        Returns:
            True if transition is valid
        """
        for t in self._transition_map.get(self.current, []):
            if t.to_phase != to_phase:
                continue
            if t.condition and (context is None or not t.condition(context)):
                return False
            return True
        return False

    def transition(self, to_phase: Phase, context: TransactionContext | None = None) -> None:
        """Move to a new phase.

        Raises:
            InvalidTransitionError: If the edge is not in the transition table.
        """
        if not self.can_transition(to_phase, context):
            origin = self.current.title if self.current else "start"
            raise InvalidTransitionError(
                f"Invalid phase transition: {origin} -> {to_phase.title}",
                context={"valid": ", ".join(p.title for p in self.get_valid_next_phases())},
            )
        self.current = to_phase
        self.history.append(PhaseVisit(to_phase))

    def get_valid_next_phases(self) -> list[Phase]:
        return [t.to_phase for t in self._transition_map.get(self.current, [])]

    def validate_sequence(self, phases: list[Phase]) -> None:
        """Check a whole phase set up front, without changing state.

        Raises:
            InvalidTransitionError: If the sequence cannot run to completion.
        """
        machine = StateMachine()
        for phase in [*phases, Phase.COMPLETED]:
            machine.transition(phase)

    def is_terminal(self) -> bool:
        return self.current in TERMINAL_PHASES

    def is_completed(self) -> bool:
        return self.current == Phase.COMPLETED

    @property
    def visited(self) -> list[Phase]:
        return [visit.phase for visit in self.history]
