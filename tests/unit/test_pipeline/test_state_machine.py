"""Unit tests for the curation cycle state machine."""

import pytest

from news_digest.pipeline.state_machine import (
    CycleState,
    CycleStateError,
    CycleStateMachine,
)


class TestCycleStateMachine:
    """Tests for CycleStateMachine."""

    def test_initial_state(self) -> None:
        """Cycles start in STARTED."""
        machine = CycleStateMachine("run-1")
        assert machine.state == CycleState.STARTED
        assert not machine.is_terminal()

    def test_happy_path(self) -> None:
        """Phases run in order to FINISHED_SUCCESS."""
        machine = CycleStateMachine("run-1")
        for state in (
            CycleState.EMBEDDING,
            CycleState.CLUSTERING,
            CycleState.MAINTAINING,
            CycleState.FINISHED_SUCCESS,
        ):
            machine.transition(state)

        assert machine.is_terminal()

    def test_cannot_skip_phases(self) -> None:
        """Clustering cannot start before embedding."""
        machine = CycleStateMachine("run-1")

        with pytest.raises(CycleStateError) as exc_info:
            machine.transition(CycleState.CLUSTERING)

        assert exc_info.value.from_state == CycleState.STARTED
        assert exc_info.value.to_state == CycleState.CLUSTERING
        assert machine.state == CycleState.STARTED

    @pytest.mark.parametrize(
        "phases",
        [
            [],
            [CycleState.EMBEDDING],
            [CycleState.EMBEDDING, CycleState.CLUSTERING],
            [CycleState.EMBEDDING, CycleState.CLUSTERING, CycleState.MAINTAINING],
        ],
    )
    def test_fail_from_any_phase(self, phases: list[CycleState]) -> None:
        """Every non-terminal phase can fail."""
        machine = CycleStateMachine("run-1")
        for state in phases:
            machine.transition(state)

        machine.fail()

        assert machine.state == CycleState.FINISHED_FAILURE

    def test_fail_after_success_is_noop(self) -> None:
        """A finished cycle stays finished."""
        machine = CycleStateMachine("run-1")
        for state in (
            CycleState.EMBEDDING,
            CycleState.CLUSTERING,
            CycleState.MAINTAINING,
            CycleState.FINISHED_SUCCESS,
        ):
            machine.transition(state)

        machine.fail()

        assert machine.state == CycleState.FINISHED_SUCCESS
        assert not machine.can_transition(CycleState.EMBEDDING)
