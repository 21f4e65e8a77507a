"""Tests for AuthBootstrap — the identity provider is replaced by FakeProvider."""

import pytest
from conftest import FakeAuthInstance, FakeProvider

from src.agent.activity_log import ActivityLog, LogCategory
from src.auth.bootstrap import GMAIL_DISCOVERY_URL, GMAIL_SEND_SCOPE, AuthBootstrap
from src.auth.provider import ACCESS_DENIED, POPUP_CLOSED_BY_USER, LibraryLoadError, SignInError
from src.auth.state import AuthState
from src.gmail.types import UserIdentity


# ── Helpers ────────────────────────────────────────────────────────────────────


def make_bootstrap(provider: FakeProvider, log: ActivityLog, **kwargs: object) -> AuthBootstrap:
    kwargs.setdefault("client_id", "client-123.apps.googleusercontent.com")
    return AuthBootstrap(provider, log, **kwargs)  # type: ignore[arg-type]


def messages(log: ActivityLog, category: LogCategory | None = None) -> list[str]:
    return [e.message for e in log.entries if category is None or e.category == category]


async def started(provider: FakeProvider, log: ActivityLog, **kwargs: object) -> AuthBootstrap:
    bootstrap = make_bootstrap(provider, log, **kwargs)
    await bootstrap.start()
    return bootstrap


# ── Loading sequence ───────────────────────────────────────────────────────────


class TestStart:
    async def test_reaches_signed_out_without_a_session(self, provider: FakeProvider, log: ActivityLog) -> None:
        bootstrap = await started(provider, log)

        assert bootstrap.state is AuthState.SIGNED_OUT
        assert bootstrap.identity is None
        assert "Starting Google API loading sequence..." in messages(log, LogCategory.AUTH)
        assert "Google API client initialized successfully." in messages(log, LogCategory.AUTH)
        # a fresh session that never signed in doesn't announce a sign-out
        assert "Signed out from Google." not in messages(log)

    async def test_existing_session_is_detected_immediately(self, log: ActivityLog) -> None:
        identity = UserIdentity(email="owner@example.com", display_name="Owner")
        provider = FakeProvider(FakeAuthInstance(identity, signed_in=True))

        bootstrap = await started(provider, log)

        assert bootstrap.state is AuthState.SIGNED_IN
        assert bootstrap.identity == identity
        assert "Signed in to Google as owner@example.com." in messages(log, LogCategory.SUCCESS)

    async def test_passes_send_scope_and_discovery_document(self, provider: FakeProvider, log: ActivityLog) -> None:
        await started(provider, log, client_id="abc.apps.googleusercontent.com")

        assert provider.init_calls == [
            {
                "client_id": "abc.apps.googleusercontent.com",
                "scope": GMAIL_SEND_SCOPE,
                "discovery_url": GMAIL_DISCOVERY_URL,
            }
        ]
        assert GMAIL_SEND_SCOPE == "https://www.googleapis.com/auth/gmail.send"

    async def test_runs_at_most_once(self, provider: FakeProvider, log: ActivityLog) -> None:
        bootstrap = make_bootstrap(provider, log)

        await bootstrap.start()
        await bootstrap.start()

        assert provider.ready_calls == 1
        assert provider.load_calls == 1
        assert len(provider.init_calls) == 1
        assert len(provider.instance.listeners) == 1

    async def test_state_passes_through_loading_and_ready(self, provider: FakeProvider, log: ActivityLog) -> None:
        bootstrap = make_bootstrap(provider, log)
        seen: list[AuthState] = []
        bootstrap.machine.on_change(lambda _prev, new: seen.append(new))

        await bootstrap.start()

        assert seen == [AuthState.LOADING_LIBRARY, AuthState.LIBRARY_READY, AuthState.SIGNED_OUT]


# ── Loading failures ───────────────────────────────────────────────────────────


class TestStartFailures:
    async def test_library_never_available(self, provider: FakeProvider, log: ActivityLog) -> None:
        provider.available = False

        bootstrap = await started(provider, log)

        assert bootstrap.state is AuthState.LIBRARY_ERROR
        assert provider.load_calls == 0
        assert any(m.startswith("Failed to detect the Google API client library") for m in messages(log, LogCategory.ERROR))

    async def test_module_load_error(self, provider: FakeProvider, log: ActivityLog) -> None:
        provider.load_error = LibraryLoadError("No module named 'googleapiclient'")

        bootstrap = await started(provider, log)

        assert bootstrap.state is AuthState.LIBRARY_ERROR
        assert provider.init_calls == []
        assert (
            "Error loading Google API modules (client:auth2): No module named 'googleapiclient'"
            in messages(log, LogCategory.ERROR)
        )

    async def test_module_load_timeout(self, provider: FakeProvider, log: ActivityLog) -> None:
        provider.load_delay = 1.0

        bootstrap = await started(provider, log, load_timeout=0.01)

        assert bootstrap.state is AuthState.LIBRARY_ERROR
        assert "Timeout occurred while loading Google API modules (client:auth2)." in messages(
            log, LogCategory.ERROR
        )

    async def test_missing_client_id(self, provider: FakeProvider, log: ActivityLog) -> None:
        bootstrap = await started(provider, log, client_id="")

        assert bootstrap.state is AuthState.LIBRARY_ERROR
        assert provider.init_calls == []
        assert "Google OAuth client ID is missing. Set GOOGLE_OAUTH_CLIENT_ID." in messages(log, LogCategory.ERROR)

    async def test_init_client_error(self, provider: FakeProvider, log: ActivityLog) -> None:
        provider.init_error = RuntimeError("invalid_client")

        bootstrap = await started(provider, log)

        assert bootstrap.state is AuthState.LIBRARY_ERROR
        assert "Error initializing Google API client: invalid_client" in messages(log, LogCategory.ERROR)

    async def test_missing_auth_instance(self, log: ActivityLog) -> None:
        provider = FakeProvider()
        provider.instance = None  # type: ignore[assignment]

        bootstrap = await started(provider, log)

        assert bootstrap.state is AuthState.LIBRARY_ERROR
        assert any(m.startswith("Error initializing Google API client:") for m in messages(log, LogCategory.ERROR))

    async def test_library_error_is_not_retried(self, provider: FakeProvider, log: ActivityLog) -> None:
        provider.available = False
        bootstrap = await started(provider, log)
        provider.available = True

        await bootstrap.start()

        assert bootstrap.state is AuthState.LIBRARY_ERROR
        assert provider.ready_calls == 1


# ── Sign-in status listener ────────────────────────────────────────────────────


class TestSignInStatus:
    async def test_sign_out_after_sign_in_is_logged(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)
        auth_instance.fire(True)
        auth_instance.fire(False)

        assert bootstrap.state is AuthState.SIGNED_OUT
        assert bootstrap.identity is None
        assert messages(log, LogCategory.AUTH)[-1] == "Signed out from Google."

    async def test_repeated_signed_out_notification_is_silent(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)
        before = len(log)

        auth_instance.fire(False)

        assert bootstrap.state is AuthState.SIGNED_OUT
        assert len(log) == before

    async def test_sign_out_delegates_to_instance(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)
        await bootstrap.sign_in()

        await bootstrap.sign_out()

        assert bootstrap.state is AuthState.SIGNED_OUT
        assert auth_instance.is_signed_in() is False


# ── sign_in ────────────────────────────────────────────────────────────────────


class TestSignIn:
    async def test_success_records_identity(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)

        await bootstrap.sign_in()

        assert bootstrap.state is AuthState.SIGNED_IN
        assert bootstrap.identity == auth_instance.identity
        assert "Attempting Google Sign-In..." in messages(log, LogCategory.AUTH)

    async def test_popup_closed_is_informational(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)
        auth_instance.sign_in_error = SignInError(POPUP_CLOSED_BY_USER)

        await bootstrap.sign_in()

        assert bootstrap.state is AuthState.SIGNED_OUT
        assert "Google Sign-in window closed by user." in messages(log, LogCategory.INFO)

    async def test_access_denied_is_an_auth_error(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)
        auth_instance.sign_in_error = SignInError(ACCESS_DENIED)

        await bootstrap.sign_in()

        assert bootstrap.state is AuthState.AUTH_ERROR
        assert "Google Sign-in access denied by user." in messages(log, LogCategory.ERROR)

    async def test_other_sign_in_error(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)
        auth_instance.sign_in_error = SignInError("immediate_failed", "consent required")

        await bootstrap.sign_in()

        assert bootstrap.state is AuthState.AUTH_ERROR
        assert "Google Sign-in error: consent required" in messages(log, LogCategory.ERROR)

    async def test_unexpected_exception(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)
        auth_instance.sign_in_error = OSError("address already in use")

        await bootstrap.sign_in()

        assert bootstrap.state is AuthState.AUTH_ERROR
        assert "Google Sign-in error: address already in use" in messages(log, LogCategory.ERROR)

    async def test_retry_after_auth_error(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)
        auth_instance.sign_in_error = SignInError(ACCESS_DENIED)
        await bootstrap.sign_in()
        auth_instance.sign_in_error = None

        await bootstrap.sign_in()

        assert bootstrap.state is AuthState.SIGNED_IN

    async def test_without_instance_marks_library_error(self, provider: FakeProvider, log: ActivityLog) -> None:
        bootstrap = make_bootstrap(provider, log)

        await bootstrap.sign_in()

        assert bootstrap.state is AuthState.LIBRARY_ERROR
        assert (
            "Google auth instance not ready. Cannot sign in. Possible initialization failure."
            in messages(log, LogCategory.ERROR)
        )

    async def test_without_instance_after_failure_keeps_library_error(
        self, provider: FakeProvider, log: ActivityLog
    ) -> None:
        provider.available = False
        bootstrap = await started(provider, log)

        await bootstrap.sign_in()

        assert bootstrap.state is AuthState.LIBRARY_ERROR


# ── mail_sender ────────────────────────────────────────────────────────────────


class TestMailSender:
    async def test_returns_instance_sender(
        self, provider: FakeProvider, auth_instance: FakeAuthInstance, log: ActivityLog
    ) -> None:
        bootstrap = await started(provider, log)
        assert await bootstrap.mail_sender() is auth_instance.mailer

    async def test_raises_before_initialisation(self, provider: FakeProvider, log: ActivityLog) -> None:
        bootstrap = make_bootstrap(provider, log)
        with pytest.raises(RuntimeError):
            await bootstrap.mail_sender()

