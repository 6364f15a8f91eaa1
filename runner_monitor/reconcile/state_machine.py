"""State machine for the per-repository sync phases."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class RepositorySyncState(str, Enum):
    """Phase of one repository's reconciliation.

    - PENDING: Not yet started
    - FETCHING: Loading remote and stored runner sets
    - DIFFING: Applying remote observations to stored runners
    - SWEEPING: Demoting stored runners missing from the fetch
    - DONE: Completed
    - FAILED: Aborted with an error
    """

    PENDING = "PENDING"
    FETCHING = "FETCHING"
    DIFFING = "DIFFING"
    SWEEPING = "SWEEPING"
    DONE = "DONE"
    FAILED = "FAILED"


_VALID_TRANSITIONS: dict[RepositorySyncState, set[RepositorySyncState]] = {
    RepositorySyncState.PENDING: {
        RepositorySyncState.FETCHING,
        RepositorySyncState.FAILED,
    },
    RepositorySyncState.FETCHING: {
        RepositorySyncState.DIFFING,
        RepositorySyncState.FAILED,
    },
    RepositorySyncState.DIFFING: {
        RepositorySyncState.SWEEPING,
        RepositorySyncState.FAILED,
    },
    RepositorySyncState.SWEEPING: {
        RepositorySyncState.DONE,
        RepositorySyncState.FAILED,
    },
    RepositorySyncState.DONE: set(),
    RepositorySyncState.FAILED: set(),
}


class RepositorySyncStateError(Exception):
    """Raised when an illegal sync phase transition is attempted."""

    def __init__(
        self,
        repo_id: str,
        from_state: RepositorySyncState,
        to_state: RepositorySyncState,
    ) -> None:
        self.repo_id = repo_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal sync transition for repository '{repo_id}': "
            f"{from_state.value} -> {to_state.value}"
        )


class RepositorySyncStateMachine:
    """Tracks the sync phase of one repository.

    Guarantees the diff phase completes before the sweep phase starts.
    """

    def __init__(
        self,
        repo_id: str,
        pass_id: str,
        initial_state: RepositorySyncState = RepositorySyncState.PENDING,
    ) -> None:
        """Initialize the state machine.

        Args:
            repo_id: Repository identifier.
            pass_id: Identifier of the current pass.
            initial_state: Starting state.
        """
        self._repo_id = repo_id
        self._state = initial_state
        self._log = logger.bind(
            component="reconcile",
            pass_id=pass_id,
            repo_id=repo_id,
        )

    @property
    def state(self) -> RepositorySyncState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in (RepositorySyncState.DONE, RepositorySyncState.FAILED)

    def can_transition_to(self, target: RepositorySyncState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: RepositorySyncState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            RepositorySyncStateError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise RepositorySyncStateError(self._repo_id, self._state, target)

        old_state = self._state
        self._state = target
        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_fetching(self) -> None:
        """Transition to FETCHING state."""
        self.transition_to(RepositorySyncState.FETCHING)

    def to_diffing(self) -> None:
        """Transition to DIFFING state."""
        self.transition_to(RepositorySyncState.DIFFING)

    def to_sweeping(self) -> None:
        """Transition to SWEEPING state."""
        self.transition_to(RepositorySyncState.SWEEPING)

    def to_done(self) -> None:
        """Transition to DONE state."""
        self.transition_to(RepositorySyncState.DONE)

    def to_failed(self) -> None:
        """Transition to FAILED state."""
        self.transition_to(RepositorySyncState.FAILED)
