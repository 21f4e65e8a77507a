"""Session controller — owns the draft, the log and both flows for one session."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from src.agent.activity_log import ActivityLog, LogCategory
from src.agent.config import MailerConfig
from src.agent.sender import BulkSender
from src.auth.bootstrap import AuthBootstrap
from src.auth.state import AiKeyState, AuthState
from src.gmail.types import Attachment, ComposeDraft, UserIdentity
from src.processing.generator import ContentGenerator, GenerationError

logger = logging.getLogger(__name__)


class MailerController:
    """The single owner of all mutable session state.

    Wires the auth bootstrap, the content generator and the bulk sender to
    one ComposeDraft and one ActivityLog.  Nothing here survives the session.

    Usage::

        controller = build_controller(MailerConfig.from_env())
        await controller.start()
        controller.draft.recipients_raw = "a@example.com, b@example.com"
        await controller.send_emails()
    """

    def __init__(
        self,
        auth: AuthBootstrap,
        generator: ContentGenerator,
        log: ActivityLog,
        sender: BulkSender | None = None,
        draft: ComposeDraft | None = None,
    ) -> None:
        self._auth = auth
        self._generator = generator
        self.log = log
        self._sender = sender or BulkSender(log)
        self.draft = draft or ComposeDraft()
        self._ai_state = AiKeyState.CHECKING
        self._generating = False

    # ── State ──────────────────────────────────────────────────────────────────

    @property
    def auth_state(self) -> AuthState:
        return self._auth.state

    @property
    def ai_state(self) -> AiKeyState:
        return self._ai_state

    @property
    def identity(self) -> UserIdentity | None:
        return self._auth.identity

    @property
    def is_sending(self) -> bool:
        return self._sender.is_sending

    @property
    def is_generating(self) -> bool:
        return self._generating

    # ── Startup & auth ─────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Initialise the AI service once, then run the auth bootstrap."""
        self.initialize_ai()
        await self._auth.start()

    async def sign_in(self) -> None:
        await self._auth.sign_in()

    async def sign_out(self) -> None:
        await self._auth.sign_out()

    def initialize_ai(self) -> None:
        """Create the generative-text client and settle AiKeyState (once)."""
        if self._ai_state is not AiKeyState.CHECKING:
            return
        self.log.add("Attempting to initialize AI service (Claude)...", LogCategory.AI)
        error = self._generator.initialize()
        if error:
            self._ai_state = AiKeyState.UNAVAILABLE
            self.log.add(f"AI Service Initialization Failed: {error}", LogCategory.ERROR)
        else:
            self._ai_state = AiKeyState.READY
            self.log.add("AI Service Initialized Successfully.", LogCategory.SUCCESS)

    # ── Compose ────────────────────────────────────────────────────────────────

    def add_attachments(self, paths: Iterable[Path]) -> list[Attachment]:
        """Queue files for sending; unreadable paths are logged and skipped."""
        added: list[Attachment] = []
        for path in paths:
            try:
                added.append(Attachment.from_path(Path(path)))
            except OSError as exc:
                self.log.add(f"Cannot attach {path}: {exc}", LogCategory.ERROR)
        if added:
            self.draft.attachments.extend(added)
            names = ", ".join(a.filename for a in added)
            self.log.add(f"Added {len(added)} file(s): {names}", LogCategory.INFO)
        return added

    def remove_attachment(self, index: int) -> Attachment:
        """Remove the attachment at ``index``. Raises IndexError if out of range.

        Not reachable from the CLI, which builds the attachment list in one go
        from ``--attach``; kept for callers that edit a draft in place.
        """
        removed = self.draft.attachments.pop(index)
        self.log.add(f"Removed file: {removed.filename}", LogCategory.INFO)
        return removed

    async def generate_with_ai(self, custom_prompt: str | None = None) -> bool:
        """Replace the draft body with an AI-generated one. Returns True on success."""
        if self._ai_state is not AiKeyState.READY:
            self.log.add(
                "Cannot generate content: AI Service not available "
                "(API key might be missing or initialization failed).",
                LogCategory.ERROR,
            )
            return False
        if not self.draft.subject.strip():
            self.log.add(
                "Please enter a subject to help the AI generate relevant content.",
                LogCategory.ERROR,
            )
            return False
        if self._generating:
            self.log.add("AI generation is already in progress.", LogCategory.ERROR)
            return False

        self._generating = True
        self.log.add("Generating email body with AI (Claude)...", LogCategory.AI)
        try:
            self.draft.body_html = await self._generator.generate_body(
                self.draft.subject, custom_prompt
            )
        except GenerationError as exc:
            self.log.add(f"Error generating email body with AI: {exc}", LogCategory.ERROR)
            return False
        finally:
            self._generating = False

        self.log.add("AI successfully generated email body.", LogCategory.SUCCESS)
        return True

    # ── Send ───────────────────────────────────────────────────────────────────

    async def send_emails(self) -> bool:
        """Run one bulk send of the current draft. Returns False if rejected."""
        identity = self._auth.identity
        if self._auth.state is not AuthState.SIGNED_IN or identity is None:
            self.log.add("Please sign in with Google to send emails.", LogCategory.ERROR)
            return False
        if self._sender.is_sending:
            self.log.add("A bulk send is already in progress.", LogCategory.ERROR)
            return False

        try:
            mailer = await self._auth.mail_sender()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Could not build Gmail sender", exc_info=True)
            self.log.add(f"Could not prepare the Gmail client: {exc}", LogCategory.ERROR)
            return False

        return await self._sender.run(self.draft, sender_email=identity.email, mailer=mailer)


def build_controller(config: MailerConfig) -> MailerController:
    """Construct a controller backed by the real Google and Anthropic clients."""
    from src.auth.google import GoogleAuthProvider

    log = ActivityLog()
    provider = GoogleAuthProvider(
        client_secret=config.google_client_secret,
        token_path=config.token_path,
        sign_in_timeout=config.sign_in_timeout,
    )
    auth = AuthBootstrap(provider, log, client_id=config.google_client_id)
    return MailerController(auth, ContentGenerator(config.anthropic_api_key), log)
