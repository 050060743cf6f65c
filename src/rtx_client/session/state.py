"""Explicit session state machine.

The client never infers session mode from scattered string checks; it asks
this table whether a move is legal and records where it is.
"""
import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    PRIVILEGED = "privileged"
    BUSY = "busy"
    CLOSED = "closed"


_S = SessionState

TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    _S.DISCONNECTED: frozenset({_S.CONNECTING, _S.CLOSED}),
    _S.CONNECTING: frozenset({_S.AUTHENTICATED, _S.PRIVILEGED, _S.DISCONNECTED, _S.CLOSED}),
    _S.AUTHENTICATED: frozenset({_S.BUSY, _S.PRIVILEGED, _S.DISCONNECTED, _S.CLOSED}),
    _S.PRIVILEGED: frozenset({_S.BUSY, _S.AUTHENTICATED, _S.DISCONNECTED, _S.CLOSED}),
    _S.BUSY: frozenset({_S.AUTHENTICATED, _S.PRIVILEGED, _S.DISCONNECTED, _S.CLOSED}),
    # A closed client may be dialed again
    _S.CLOSED: frozenset({_S.CONNECTING}),
}

READY_STATES = frozenset({_S.AUTHENTICATED, _S.PRIVILEGED})


class InvalidTransition(RuntimeError):
    """Raised when code attempts a move the table does not allow."""

    def __init__(self, current: SessionState, target: SessionState):
        super().__init__(f"Illegal session transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


class SessionStateMachine:
    """Tracks the state of one session and the mode to return to after Busy."""

    def __init__(self, router_id: str = ""):
        self.router_id = router_id
        self._state = SessionState.DISCONNECTED
        self._resting: Optional[SessionState] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state in READY_STATES

    @property
    def is_privileged(self) -> bool:
        """True if the shell is in administrator mode (including while Busy)."""
        if self._state is SessionState.BUSY:
            return self._resting is SessionState.PRIVILEGED
        return self._state is SessionState.PRIVILEGED

    def can_transition(self, target: SessionState) -> bool:
        return target in TRANSITIONS[self._state]

    def transition(self, target: SessionState) -> None:
        if target is self._state:
            return
        if not self.can_transition(target):
            raise InvalidTransition(self._state, target)
        logger.debug(f"{self.router_id or 'session'}: {self._state.value} -> {target.value}")
        if target is SessionState.BUSY:
            self._resting = self._state
        elif self._state is SessionState.BUSY:
            self._resting = None
        self._state = target

    def begin_command(self) -> None:
        """Enter Busy from a ready state."""
        if not self.is_ready:
            raise InvalidTransition(self._state, SessionState.BUSY)
        self.transition(SessionState.BUSY)

    def end_command(self) -> None:
        """Leave Busy back to the mode the command started in."""
        if self._state is not SessionState.BUSY:
            return
        self.transition(self._resting or SessionState.AUTHENTICATED)

    def drop(self) -> None:
        """Channel lost: go back to Disconnected unless already closed."""
        if self._state in (SessionState.CLOSED, SessionState.DISCONNECTED):
            return
        self.transition(SessionState.DISCONNECTED)

    def close(self) -> None:
        """Move to Closed from any state."""
        if self._state is SessionState.CLOSED:
            return
        self._resting = None
        logger.debug(f"{self.router_id or 'session'}: {self._state.value} -> closed")
        self._state = SessionState.CLOSED
