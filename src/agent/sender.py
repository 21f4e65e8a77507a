"""Bulk send loop — one message per recipient, fixed pacing, per-recipient isolation."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from src.agent.activity_log import ActivityLog, LogCategory
from src.gmail.client import MailSender, MailSendError
from src.gmail.message import build_raw_message, encode_base64url, is_valid_email, split_recipients
from src.gmail.types import ComposeDraft, SendOutcome

logger = logging.getLogger(__name__)

# Keeps a manual bulk send under Gmail's per-user sending rate limits.
SEND_INTERVAL_SECONDS = 60

_UNKNOWN_ERROR = "An unknown error occurred."

Sleep = Callable[[float], Awaitable[None]]


class BulkSender:
    """Sends the same draft to each recipient as a separate message.

    Only one run may be in flight at a time; a second call while ``is_sending``
    is rejected with a log entry.  A failure for one recipient is logged and
    the loop moves on.  There is no cancellation, and auth state is not
    re-checked mid-run.

    Usage::

        sender = BulkSender(log)
        await sender.run(draft, sender_email="me@example.com", mailer=gmail_sender)
    """

    def __init__(
        self,
        log: ActivityLog,
        *,
        interval: float = SEND_INTERVAL_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._log = log
        self._interval = interval
        self._sleep = sleep
        self._sending = False

    @property
    def is_sending(self) -> bool:
        return self._sending

    async def run(self, draft: ComposeDraft, *, sender_email: str, mailer: MailSender) -> bool:
        """Send ``draft`` to every recipient in ``draft.recipients_raw``.

        Returns False if the run was rejected before any recipient was
        processed (already sending, or no recipients), True otherwise.
        """
        if self._sending:
            self._log.add("A bulk send is already in progress.", LogCategory.ERROR)
            return False

        self._sending = True
        try:
            return await self._run(draft, sender_email, mailer)
        finally:
            self._sending = False

    # ── Internal ───────────────────────────────────────────────────────────────

    async def _run(self, draft: ComposeDraft, sender_email: str, mailer: MailSender) -> bool:
        self._log.add("Starting email sending process...", LogCategory.INFO)
        recipients = split_recipients(draft.recipients_raw)
        if not recipients:
            self._log.add("No recipients provided. Please add email addresses.", LogCategory.ERROR)
            return False

        total = len(recipients)
        # Every recipient gets the draft as it was when the run started.
        snapshot = replace(draft, attachments=list(draft.attachments))
        attachments = snapshot.attachments
        self._log.add(f"Found {total} potential recipients.", LogCategory.INFO)
        if attachments:
            names = ", ".join(a.filename for a in attachments)
            self._log.add(
                f"Preparing to send with {len(attachments)} attachment(s): {names}.",
                LogCategory.INFO,
            )

        for index, recipient in enumerate(recipients):
            outcome = await self._send_one(
                recipient, index, total, snapshot, sender_email, mailer
            )
            logger.debug("recipient=%s outcome=%s", recipient, outcome.value)

            if index < total - 1:
                if outcome is SendOutcome.SKIPPED_INVALID_ADDRESS:
                    wait = f"Waiting {self._interval:g} seconds before processing next recipient (due to skip)..."
                else:
                    wait = f"Waiting {self._interval:g} seconds before sending the next email..."
                self._log.add(wait, LogCategory.INFO)
                await self._sleep(self._interval)

        self._log.add("Bulk email sending process complete.", LogCategory.SUCCESS)
        return True

    async def _send_one(
        self,
        recipient: str,
        index: int,
        total: int,
        draft: ComposeDraft,
        sender_email: str,
        mailer: MailSender,
    ) -> SendOutcome:
        if not is_valid_email(recipient):
            self._log.add(f"Skipping invalid email format: {recipient}", LogCategory.ERROR)
            return SendOutcome.SKIPPED_INVALID_ADDRESS

        attachments = draft.attachments
        suffix = f" with {len(attachments)} attachment(s)." if attachments else "."
        self._log.add(f"Sending email {index + 1} of {total} to: {recipient}{suffix}", LogCategory.INFO)
        try:
            raw = build_raw_message(
                sender_email, recipient, draft.subject, draft.body_html, attachments
            )
            await mailer.send_raw(encode_base64url(raw))
        except MailSendError as exc:
            return self._failed(recipient, exc.reason or _UNKNOWN_ERROR, exc)
        except Exception as exc:  # noqa: BLE001
            return self._failed(recipient, str(exc) or _UNKNOWN_ERROR, exc)

        self._log.add(f"Email successfully sent to {recipient}.", LogCategory.SUCCESS)
        return SendOutcome.SENT

    def _failed(self, recipient: str, reason: str, exc: Exception) -> SendOutcome:
        logger.debug("Send to %s failed", recipient, exc_info=exc)
        self._log.add(f"Failed to send email to {recipient}: {reason}", LogCategory.ERROR)
        return SendOutcome.FAILED
