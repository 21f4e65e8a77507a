"""Google implementation of the AuthProvider capability.

Maps the browser SDK's ``client`` and ``auth2`` modules onto their Python
counterparts (``googleapiclient.discovery`` and ``google_auth_oauthlib.flow``)
and runs the installed-app OAuth flow on a loopback redirect.  The token file
stands in for the provider's browser session so that a previous sign-in is
picked up on start.
"""

from __future__ import annotations

import asyncio
import importlib
import importlib.util
import logging
from pathlib import Path
from types import ModuleType
from typing import Any

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from oauthlib.oauth2.rfc6749.errors import AccessDeniedError

from src.auth.provider import (
    ACCESS_DENIED,
    POPUP_CLOSED_BY_USER,
    ConfigurationError,
    LibraryLoadError,
    SignInListener,
    SignInError,
    poll_until,
)
from src.gmail.client import GmailSender
from src.gmail.types import UserIdentity

logger = logging.getLogger(__name__)

# Module key → importable module providing it.
_MODULES: dict[str, str] = {
    "client": "googleapiclient.discovery",
    "auth2": "google_auth_oauthlib.flow",
}

# auth2 fetches the basic profile alongside the requested scope; so do we.
BASIC_PROFILE_SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]

_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
_TOKEN_URI = "https://oauth2.googleapis.com/token"


def _library_present() -> bool:
    return all(
        importlib.util.find_spec(name.split(".")[0]) is not None
        for name in _MODULES.values()
    )


class GoogleAuthProvider:
    """Loads the Google client modules and hands out a GoogleAuthInstance."""

    def __init__(
        self,
        *,
        client_secret: str,
        token_path: Path,
        sign_in_timeout: int = 120,
        poll_interval: float = 0.1,
        max_poll_attempts: int = 50,
    ) -> None:
        self._client_secret = client_secret
        self._token_path = token_path
        self._sign_in_timeout = sign_in_timeout
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._modules: dict[str, ModuleType] = {}
        self._instance: GoogleAuthInstance | None = None

    async def ready(self) -> bool:
        return await poll_until(
            _library_present,
            interval=self._poll_interval,
            max_attempts=self._max_poll_attempts,
        )

    async def load(self) -> None:
        for key, module_name in _MODULES.items():
            try:
                self._modules[key] = await asyncio.to_thread(importlib.import_module, module_name)
            except ImportError as exc:
                raise LibraryLoadError(f"could not import {module_name}: {exc}") from exc
            logger.debug("Loaded module %s (%s)", key, module_name)

    async def init_client(self, *, client_id: str, scope: str, discovery_url: str) -> None:
        if not self._modules:
            raise LibraryLoadError("init_client() called before load()")
        if not self._client_secret:
            raise ConfigurationError("Google OAuth client secret is missing (GOOGLE_OAUTH_CLIENT_SECRET)")

        client_config = {
            "installed": {
                "client_id": client_id,
                "client_secret": self._client_secret,
                "auth_uri": _AUTH_URI,
                "token_uri": _TOKEN_URI,
                "redirect_uris": ["http://localhost"],
            }
        }
        instance = GoogleAuthInstance(
            discovery=self._modules["client"],
            flow_module=self._modules["auth2"],
            client_config=client_config,
            scopes=[scope, *BASIC_PROFILE_SCOPES],
            discovery_url=discovery_url,
            token_path=self._token_path,
            sign_in_timeout=self._sign_in_timeout,
        )
        await instance.restore()
        self._instance = instance

    def get_auth_instance(self) -> GoogleAuthInstance | None:
        return self._instance


class GoogleAuthInstance:
    """Signed-in state for one session, backed by google-auth Credentials."""

    def __init__(
        self,
        *,
        discovery: ModuleType,
        flow_module: ModuleType,
        client_config: dict[str, Any],
        scopes: list[str],
        discovery_url: str,
        token_path: Path,
        sign_in_timeout: int,
    ) -> None:
        self._discovery = discovery
        self._flow_module = flow_module
        self._client_config = client_config
        self._scopes = scopes
        self._discovery_url = discovery_url
        self._token_path = token_path
        self._sign_in_timeout = sign_in_timeout
        self._credentials: Credentials | None = None
        self._profile: UserIdentity | None = None
        self._sender: GmailSender | None = None
        self._listeners: list[SignInListener] = []

    # ── AuthInstance ───────────────────────────────────────────────────────────

    def is_signed_in(self) -> bool:
        return self._credentials is not None and self._profile is not None

    def current_profile(self) -> UserIdentity | None:
        return self._profile

    def listen(self, listener: SignInListener) -> None:
        self._listeners.append(listener)

    async def sign_in(self) -> None:
        """Open the consent page in a browser and wait for the loopback redirect.

        Raises:
            SignInError: ``access_denied`` if the user refused consent,
                ``popup_closed_by_user`` if the window was abandoned.
        """
        flow = self._flow_module.InstalledAppFlow.from_client_config(
            self._client_config, scopes=self._scopes
        )
        try:
            credentials = await asyncio.to_thread(
                flow.run_local_server,
                port=0,
                timeout_seconds=self._sign_in_timeout,
            )
        except AccessDeniedError as exc:
            raise SignInError(ACCESS_DENIED, str(exc)) from exc
        except AttributeError as exc:
            # run_local_server has no redirect URI to parse when the wait times out.
            raise SignInError(POPUP_CLOSED_BY_USER, "sign-in window closed") from exc

        self._profile = await self._fetch_profile(credentials)
        self._credentials = credentials
        self._sender = None
        self._save(credentials)
        logger.info("Signed in as %s", self._profile.email)
        self._notify(True)

    async def sign_out(self) -> None:
        self._credentials = None
        self._profile = None
        self._sender = None
        self._token_path.unlink(missing_ok=True)
        logger.info("Signed out; token cache removed")
        self._notify(False)

    async def mail_sender(self) -> GmailSender:
        if self._credentials is None:
            raise RuntimeError("not signed in")
        if self._sender is None:
            service = await asyncio.to_thread(
                self._discovery.build,
                "gmail",
                "v1",
                credentials=self._credentials,
                discoveryServiceUrl=self._discovery_url,
                static_discovery=False,
                cache_discovery=False,
            )
            self._sender = GmailSender(service)
        return self._sender

    # ── Session restore ────────────────────────────────────────────────────────

    async def restore(self) -> None:
        """Pick up a previous session from the token cache, if it is still usable."""
        if not self._token_path.exists():
            return
        try:
            credentials = Credentials.from_authorized_user_file(str(self._token_path), self._scopes)
            if not credentials.valid and credentials.expired and credentials.refresh_token:
                await asyncio.to_thread(credentials.refresh, Request())
                self._save(credentials)
            if not credentials.valid:
                return
            self._profile = await self._fetch_profile(credentials)
            self._credentials = credentials
        except (RefreshError, ValueError) as exc:
            logger.warning("Discarding unusable token cache %s: %s", self._token_path, exc)
            self._token_path.unlink(missing_ok=True)

    # ── Internal helpers ───────────────────────────────────────────────────────

    async def _fetch_profile(self, credentials: Credentials) -> UserIdentity:
        def _userinfo() -> dict[str, Any]:
            service = self._discovery.build(
                "oauth2", "v2", credentials=credentials, cache_discovery=False
            )
            return service.userinfo().get().execute()

        info = await asyncio.to_thread(_userinfo)
        return UserIdentity(email=str(info["email"]), display_name=info.get("name") or None)

    def _save(self, credentials: Credentials) -> None:
        self._token_path.parent.mkdir(parents=True, exist_ok=True)
        self._token_path.write_text(credentials.to_json(), encoding="utf-8")

    def _notify(self, signed_in: bool) -> None:
        for listener in self._listeners:
            listener(signed_in)
