"""
Per-call state machine for outbound requests.

Every call starts as an authenticated or unauthenticated attempt and ends
in SUCCEEDED or FAILED. An authenticated attempt rejected with 401/403 may
pass through REFRESHING and RETRIED exactly once on the way.

Usage:
    trace = RequestTrace(RequestState.AUTHENTICATED_ATTEMPT)
    trace.transition(RequestState.REFRESHING)
    trace.transition(RequestState.RETRIED)
    trace.transition(RequestState.SUCCEEDED)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

logger = logging.getLogger(__name__)


class RequestState(str, Enum):
    """All states an outbound call can be in."""
    UNAUTHENTICATED_ATTEMPT = "unauthenticated_attempt"
    AUTHENTICATED_ATTEMPT = "authenticated_attempt"
    REFRESHING = "refreshing"
    RETRIED = "retried"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATES = frozenset({RequestState.SUCCEEDED, RequestState.FAILED})

INITIAL_STATES = frozenset({
    RequestState.UNAUTHENTICATED_ATTEMPT,
    RequestState.AUTHENTICATED_ATTEMPT,
})

TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.UNAUTHENTICATED_ATTEMPT: frozenset({
        RequestState.SUCCEEDED, RequestState.FAILED,
    }),
    RequestState.AUTHENTICATED_ATTEMPT: frozenset({
        RequestState.REFRESHING, RequestState.SUCCEEDED, RequestState.FAILED,
    }),
    RequestState.REFRESHING: frozenset({
        RequestState.RETRIED, RequestState.FAILED,
    }),
    # RETRIED never goes back to REFRESHING: one retry per call
    RequestState.RETRIED: frozenset({
        RequestState.SUCCEEDED, RequestState.FAILED,
    }),
    RequestState.SUCCEEDED: frozenset(),
    RequestState.FAILED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: RequestState
    entered_at: datetime


class RequestTrace:
    """State history of one outbound call, including its retry."""

    def __init__(self, initial: RequestState) -> None:
        if initial not in INITIAL_STATES:
            raise InvalidTransitionError(f"'{initial.value}' is not an initial state")
        self._current_state = initial
        self._history: list[StateEntry] = [
            StateEntry(state=initial, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> RequestState:
        return self._current_state

    def transition(self, to_state: RequestState) -> RequestState:
        """
        Move the call to a new state.

        Raises:
            InvalidTransitionError: If the move is not allowed from the current state.
        """
        allowed = TRANSITIONS[self._current_state]
        if to_state not in allowed:
            raise InvalidTransitionError(
                f"No valid transition from '{self._current_state.value}' "
                f"to '{to_state.value}'. Valid targets: {sorted(s.value for s in allowed)}"
            )

        old_state = self._current_state
        self._current_state = to_state
        self._history.append(StateEntry(state=to_state, entered_at=datetime.now(timezone.utc)))
        logger.debug("Request state: %s -> %s", old_state.value, to_state.value)
        return to_state

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def was_retried(self) -> bool:
        return any(entry.state == RequestState.RETRIED for entry in self._history)

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
