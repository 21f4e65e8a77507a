"""Auth and AI-availability states, with the allowed auth transitions."""

import logging
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    IDLE = "idle"
    LOADING_LIBRARY = "loading-library"
    LIBRARY_READY = "library-ready"
    LIBRARY_ERROR = "library-error"
    SIGNED_IN = "signed-in"
    SIGNED_OUT = "signed-out"
    AUTH_ERROR = "auth-error"


class AiKeyState(str, Enum):
    """Whether the generative-text client initialised. Set once at startup."""

    CHECKING = "checking"
    READY = "ready"
    UNAVAILABLE = "unavailable"


# library-error is terminal: a failed bootstrap is never retried in-session.
_TRANSITIONS: dict[AuthState, frozenset[AuthState]] = {
    AuthState.IDLE: frozenset({AuthState.LOADING_LIBRARY, AuthState.LIBRARY_ERROR}),
    AuthState.LOADING_LIBRARY: frozenset({AuthState.LIBRARY_READY, AuthState.LIBRARY_ERROR}),
    AuthState.LIBRARY_READY: frozenset({
        AuthState.SIGNED_IN,
        AuthState.SIGNED_OUT,
        AuthState.AUTH_ERROR,
        AuthState.LIBRARY_ERROR,
    }),
    AuthState.SIGNED_IN: frozenset({AuthState.SIGNED_OUT, AuthState.AUTH_ERROR}),
    AuthState.SIGNED_OUT: frozenset({
        AuthState.SIGNED_IN,
        AuthState.AUTH_ERROR,
        AuthState.LIBRARY_ERROR,
    }),
    AuthState.AUTH_ERROR: frozenset({AuthState.SIGNED_IN, AuthState.SIGNED_OUT}),
    AuthState.LIBRARY_ERROR: frozenset(),
}


class InvalidAuthTransition(RuntimeError):
    """Raised when code tries to move the auth state along an edge that doesn't exist."""


class AuthStateMachine:
    """Holds the single current AuthState and enforces the transition table.

    Self-transitions are accepted as no-ops so a sign-in listener that fires
    twice with the same answer doesn't need to check first.
    """

    def __init__(self, initial: AuthState = AuthState.IDLE) -> None:
        self._state = initial
        self._listeners: list[Callable[[AuthState, AuthState], None]] = []

    @property
    def state(self) -> AuthState:
        return self._state

    def can_transition(self, target: AuthState) -> bool:
        return target == self._state or target in _TRANSITIONS[self._state]

    def transition(self, target: AuthState) -> None:
        if target == self._state:
            return
        if target not in _TRANSITIONS[self._state]:
            raise InvalidAuthTransition(f"{self._state.value} → {target.value} is not allowed")
        previous, self._state = self._state, target
        logger.debug("Auth state %s → %s", previous.value, target.value)
        for listener in self._listeners:
            listener(previous, target)

    def on_change(self, listener: Callable[[AuthState, AuthState], None]) -> None:
        self._listeners.append(listener)
