"""Identity-provider capability interfaces and the errors they raise.

The bootstrap depends only on these protocols; `src.auth.google` supplies the
real Google implementation and tests substitute doubles.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from src.gmail.client import MailSender
from src.gmail.types import UserIdentity

logger = logging.getLogger(__name__)

# Sign-in error codes, named after the provider's own error strings.
POPUP_CLOSED_BY_USER = "popup_closed_by_user"
ACCESS_DENIED = "access_denied"


class ConfigurationError(Exception):
    """Raised when a required identifier or secret is missing from configuration."""


class LibraryLoadError(Exception):
    """Raised when the client library or one of its modules cannot be loaded."""


class SignInError(Exception):
    """Raised by AuthInstance.sign_in(); ``code`` says why the user isn't signed in."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


#: Receives True when the session becomes signed in, False when it ends.
SignInListener = Callable[[bool], None]


@runtime_checkable
class AuthInstance(Protocol):
    """Handle on an initialised auth module (one per session)."""

    def is_signed_in(self) -> bool: ...

    def current_profile(self) -> UserIdentity | None: ...

    def listen(self, listener: SignInListener) -> None: ...

    async def sign_in(self) -> None:
        """Run the interactive sign-in. Raises SignInError."""
        ...

    async def sign_out(self) -> None: ...

    async def mail_sender(self) -> MailSender:
        """Return a sender bound to the signed-in session."""
        ...


@runtime_checkable
class AuthProvider(Protocol):
    """Platform adapter for the identity provider's client library."""

    async def ready(self) -> bool:
        """Resolve True once the library is usable, False if it never shows up."""
        ...

    async def load(self) -> None:
        """Load the request-client and auth modules. Raises LibraryLoadError."""
        ...

    async def init_client(self, *, client_id: str, scope: str, discovery_url: str) -> None:
        """Initialise the request client. Raises ConfigurationError/LibraryLoadError."""
        ...

    def get_auth_instance(self) -> AuthInstance | None: ...


async def poll_until(
    probe: Callable[[], bool],
    *,
    interval: float = 0.1,
    max_attempts: int = 50,
) -> bool:
    """Return True as soon as ``probe()`` does, checking every ``interval`` seconds.

    The first check happens immediately, so an already-available library costs
    no delay.  Gives up (returns False) after ``max_attempts`` further checks.
    """
    if probe():
        return True
    logger.debug("Polling for client library, max attempts: %d", max_attempts)
    for attempt in range(1, max_attempts + 1):
        await asyncio.sleep(interval)
        if probe():
            logger.debug("Client library detected after %d poll(s)", attempt)
            return True
    return False
