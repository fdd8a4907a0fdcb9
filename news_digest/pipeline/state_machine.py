"""Curation cycle state machine."""

from enum import Enum, auto
from typing import ClassVar

import structlog


logger = structlog.get_logger()


class CycleState(Enum):
    """Curation cycle states.

    State transitions:
        STARTED -> EMBEDDING: Articles ingested, embedding the unclustered batch
        EMBEDDING -> CLUSTERING: Embeddings ready, assigning articles
        CLUSTERING -> MAINTAINING: Refresh, merge and stale passes
        MAINTAINING -> FINISHED_SUCCESS: Cycle complete
        any non-terminal -> FINISHED_FAILURE: Failure at any stage
    """

    STARTED = auto()
    EMBEDDING = auto()
    CLUSTERING = auto()
    MAINTAINING = auto()
    FINISHED_SUCCESS = auto()
    FINISHED_FAILURE = auto()


class CycleStateError(Exception):
    """Raised when an invalid cycle state transition is attempted."""

    def __init__(self, from_state: CycleState, to_state: CycleState) -> None:
        """Initialize the error.

        Args:
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid cycle state transition: {from_state.name} -> {to_state.name}"
        )


class CycleStateMachine:
    """Enforces the order of a curation cycle's phases."""

    VALID_TRANSITIONS: ClassVar[dict[CycleState, set[CycleState]]] = {
        CycleState.STARTED: {CycleState.EMBEDDING, CycleState.FINISHED_FAILURE},
        CycleState.EMBEDDING: {CycleState.CLUSTERING, CycleState.FINISHED_FAILURE},
        CycleState.CLUSTERING: {CycleState.MAINTAINING, CycleState.FINISHED_FAILURE},
        CycleState.MAINTAINING: {
            CycleState.FINISHED_SUCCESS,
            CycleState.FINISHED_FAILURE,
        },
        CycleState.FINISHED_SUCCESS: set(),
        CycleState.FINISHED_FAILURE: set(),
    }

    def __init__(self, run_id: str) -> None:
        """Initialize the state machine in STARTED state.

        Args:
            run_id: Unique run identifier for logging.
        """
        self._run_id = run_id
        self._state = CycleState.STARTED
        self._log = logger.bind(run_id=run_id, component="pipeline")

    @property
    def state(self) -> CycleState:
        """Get the current state."""
        return self._state

    def can_transition(self, to_state: CycleState) -> bool:
        """Check if a transition to the given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: CycleState) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            CycleStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.name,
                to_state=to_state.name,
            )
            raise CycleStateError(self._state, to_state)

        old_state = self._state
        self._state = to_state
        self._log.info(
            "cycle_state_transition",
            from_state=old_state.name,
            to_state=to_state.name,
        )

    def fail(self) -> None:
        """Move to FINISHED_FAILURE unless already terminal."""
        if not self.is_terminal():
            self.transition(CycleState.FINISHED_FAILURE)

    def is_terminal(self) -> bool:
        """Check if the current state is terminal."""
        return self._state in (CycleState.FINISHED_SUCCESS, CycleState.FINISHED_FAILURE)
