"""Auth bootstrap — brings up one authenticated Google client per session."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.agent.activity_log import ActivityLog, LogCategory
from src.auth.provider import (
    ACCESS_DENIED,
    POPUP_CLOSED_BY_USER,
    AuthInstance,
    AuthProvider,
    SignInError,
)
from src.auth.state import AuthState, AuthStateMachine

if TYPE_CHECKING:
    from src.gmail.client import MailSender
    from src.gmail.types import UserIdentity

logger = logging.getLogger(__name__)

GMAIL_SEND_SCOPE = "https://www.googleapis.com/auth/gmail.send"
GMAIL_DISCOVERY_URL = "https://www.googleapis.com/discovery/v1/apis/gmail/v1/rest"

_LOAD_TIMEOUT_SECONDS = 7.0


class AuthBootstrap:
    """Loads the identity provider's library, initialises it and tracks sign-in.

    ``start()`` runs the loading sequence at most once per session.  Any
    failure along the way lands in ``library-error``, which is terminal: the
    session has to be restarted to try again.

    Usage::

        bootstrap = AuthBootstrap(GoogleAuthProvider(...), log, client_id=...)
        await bootstrap.start()
        if bootstrap.state is AuthState.SIGNED_OUT:
            await bootstrap.sign_in()
    """

    def __init__(
        self,
        provider: AuthProvider,
        log: ActivityLog,
        *,
        client_id: str,
        load_timeout: float = _LOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._provider = provider
        self._log = log
        self._client_id = client_id
        self._load_timeout = load_timeout
        self._machine = AuthStateMachine()
        self._instance: AuthInstance | None = None
        self._identity: UserIdentity | None = None
        self._started = False

    # ── Public API ─────────────────────────────────────────────────────────────

    @property
    def state(self) -> AuthState:
        return self._machine.state

    @property
    def machine(self) -> AuthStateMachine:
        return self._machine

    @property
    def identity(self) -> UserIdentity | None:
        return self._identity

    async def start(self) -> None:
        """Run the loading sequence. Repeated calls are no-ops."""
        if self._started:
            logger.debug("Auth bootstrap already attempted; skipping")
            return
        self._started = True

        self._machine.transition(AuthState.LOADING_LIBRARY)
        self._log.add("Starting Google API loading sequence...", LogCategory.AUTH)

        if not await self._provider.ready():
            self._fail(
                "Failed to detect the Google API client library after multiple attempts. "
                "Check that google-api-python-client and google-auth-oauthlib are installed."
            )
            return

        self._log.add("Google API client library detected. Loading modules (client:auth2)...", LogCategory.AUTH)
        try:
            await asyncio.wait_for(self._provider.load(), timeout=self._load_timeout)
        except asyncio.TimeoutError:
            self._fail("Timeout occurred while loading Google API modules (client:auth2).")
            return
        except Exception as exc:  # noqa: BLE001
            self._fail(f"Error loading Google API modules (client:auth2): {exc}")
            return

        await self._init_client()

    async def sign_in(self) -> None:
        """Start an interactive sign-in; the listener records the outcome."""
        if self._instance is None:
            self._log.add(
                "Google auth instance not ready. Cannot sign in. Possible initialization failure.",
                LogCategory.ERROR,
            )
            if self.state not in (AuthState.LIBRARY_ERROR, AuthState.LOADING_LIBRARY):
                self._machine.transition(AuthState.LIBRARY_ERROR)
                self._log.add("Auth marked as failed: no auth instance at sign-in attempt.", LogCategory.ERROR)
            return

        self._log.add("Attempting Google Sign-In...", LogCategory.AUTH)
        try:
            await self._instance.sign_in()
        except SignInError as exc:
            if exc.code == POPUP_CLOSED_BY_USER:
                self._log.add("Google Sign-in window closed by user.", LogCategory.INFO)
            elif exc.code == ACCESS_DENIED:
                self._log.add("Google Sign-in access denied by user.", LogCategory.ERROR)
                self._machine.transition(AuthState.AUTH_ERROR)
            else:
                self._sign_in_failed(exc)
        except Exception as exc:  # noqa: BLE001
            self._sign_in_failed(exc)

    async def sign_out(self) -> None:
        if self._instance is None:
            return
        await self._instance.sign_out()

    async def mail_sender(self) -> MailSender:
        if self._instance is None:
            raise RuntimeError("auth instance is not initialised")
        return await self._instance.mail_sender()

    # ── Internal ───────────────────────────────────────────────────────────────

    async def _init_client(self) -> None:
        if not self._client_id:
            self._log.add(
                "Google OAuth client ID is missing. Set GOOGLE_OAUTH_CLIENT_ID.",
                LogCategory.ERROR,
            )
            self._machine.transition(AuthState.LIBRARY_ERROR)
            return

        try:
            self._log.add("Initialising Google API client...", LogCategory.AUTH)
            await self._provider.init_client(
                client_id=self._client_id,
                scope=GMAIL_SEND_SCOPE,
                discovery_url=GMAIL_DISCOVERY_URL,
            )
            instance = self._provider.get_auth_instance()
            if instance is None:
                raise RuntimeError(
                    "getAuthInstance() returned nothing; the auth module may not have initialised"
                )
        except Exception as exc:  # noqa: BLE001
            logger.debug("Client initialisation failed", exc_info=True)
            self._fail(f"Error initializing Google API client: {exc}")
            return

        self._instance = instance
        self._machine.transition(AuthState.LIBRARY_READY)
        self._log.add("Google API client initialized successfully.", LogCategory.AUTH)

        instance.listen(self._update_signin_status)
        self._update_signin_status(instance.is_signed_in())

    def _update_signin_status(self, signed_in: bool) -> None:
        profile = self._instance.current_profile() if signed_in and self._instance else None
        if profile is not None:
            self._identity = profile
            self._machine.transition(AuthState.SIGNED_IN)
            self._log.add(f"Signed in to Google as {profile.email}.", LogCategory.SUCCESS)
            return

        was_signed_in = self.state == AuthState.SIGNED_IN
        self._identity = None
        self._machine.transition(AuthState.SIGNED_OUT)
        if was_signed_in:
            self._log.add("Signed out from Google.", LogCategory.AUTH)

    def _sign_in_failed(self, exc: Exception) -> None:
        logger.debug("Sign-in error", exc_info=exc)
        self._log.add(f"Google Sign-in error: {exc}", LogCategory.ERROR)
        self._machine.transition(AuthState.AUTH_ERROR)

    def _fail(self, message: str) -> None:
        self._log.add(message, LogCategory.ERROR)
        self._machine.transition(AuthState.LIBRARY_ERROR)
