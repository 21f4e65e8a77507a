"""Shared pytest fixtures and test doubles for the Google/Anthropic capabilities."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.agent.activity_log import ActivityLog
from src.auth.provider import SignInListener
from src.gmail.types import UserIdentity


class FakeAuthInstance:
    """In-memory AuthInstance: sign_in() succeeds as ``identity`` unless told otherwise."""

    def __init__(self, identity: UserIdentity | None = None, *, signed_in: bool = False) -> None:
        self.identity = identity or UserIdentity(email="sender@example.com", display_name="Sender")
        self._signed_in = signed_in
        self.listeners: list[SignInListener] = []
        self.sign_in_error: Exception | None = None
        self.mailer = MagicMock()
        self.mailer.send_raw = AsyncMock(return_value="msg_1")

    def is_signed_in(self) -> bool:
        return self._signed_in

    def current_profile(self) -> UserIdentity | None:
        return self.identity if self._signed_in else None

    def listen(self, listener: SignInListener) -> None:
        self.listeners.append(listener)

    def fire(self, signed_in: bool) -> None:
        self._signed_in = signed_in
        for listener in self.listeners:
            listener(signed_in)

    async def sign_in(self) -> None:
        if self.sign_in_error is not None:
            raise self.sign_in_error
        self.fire(True)

    async def sign_out(self) -> None:
        self.fire(False)

    async def mail_sender(self) -> MagicMock:
        return self.mailer


class FakeProvider:
    """AuthProvider double that records how often each bootstrap step ran."""

    def __init__(self, instance: FakeAuthInstance | None = None) -> None:
        self.instance = instance if instance is not None else FakeAuthInstance()
        self.available = True
        self.load_error: Exception | None = None
        self.load_delay: float = 0.0
        self.init_error: Exception | None = None
        self.ready_calls = 0
        self.load_calls = 0
        self.init_calls: list[dict[str, str]] = []

    async def ready(self) -> bool:
        self.ready_calls += 1
        return self.available

    async def load(self) -> None:
        self.load_calls += 1
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        if self.load_error is not None:
            raise self.load_error

    async def init_client(self, *, client_id: str, scope: str, discovery_url: str) -> None:
        self.init_calls.append({"client_id": client_id, "scope": scope, "discovery_url": discovery_url})
        if self.init_error is not None:
            raise self.init_error

    def get_auth_instance(self) -> FakeAuthInstance | None:
        return self.instance


@pytest.fixture
def log() -> ActivityLog:
    return ActivityLog()


@pytest.fixture
def auth_instance() -> FakeAuthInstance:
    return FakeAuthInstance()


@pytest.fixture
def provider(auth_instance: FakeAuthInstance) -> FakeProvider:
    return FakeProvider(auth_instance)
