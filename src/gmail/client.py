"""Gmail send client — wraps users.messages.send behind a typed async API."""

import asyncio
import json
import logging
from typing import Any, Protocol, runtime_checkable

from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

# Gmail resolves "me" to the authenticated account.
SENDER_ALIAS = "me"


class MailSendError(Exception):
    """Raised when the Gmail API rejects a message.

    ``code``/``api_message`` carry the structured error from the API response
    body when there was one.
    """

    def __init__(self, message: str, *, code: int | None = None, api_message: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.api_message = api_message

    @property
    def reason(self) -> str:
        if self.code is not None and self.api_message:
            return f"Code {self.code}: {self.api_message}"
        return str(self)


@runtime_checkable
class MailSender(Protocol):
    """Anything that can submit a base64url-encoded raw message."""

    async def send_raw(self, raw: str) -> str | None:
        """Submit one message; return the provider message ID if known."""
        ...


class GmailSender:
    """Thin async wrapper around a googleapiclient Gmail v1 service.

    The discovery-built service is synchronous, so each call runs in a worker
    thread to keep the event loop (and the pacing timer) responsive.

    Usage::

        sender = GmailSender(build("gmail", "v1", credentials=creds))
        message_id = await sender.send_raw(encode_base64url(raw))
    """

    def __init__(self, service: Any) -> None:
        self._service = service

    async def send_raw(self, raw: str) -> str | None:
        """Send a base64url-encoded RFC 2822 message as the signed-in user.

        Raises:
            MailSendError: if the API returns an HTTP error.
        """
        request = self._service.users().messages().send(
            userId=SENDER_ALIAS, body={"raw": raw}
        )
        try:
            response: dict[str, Any] = await asyncio.to_thread(request.execute)
        except HttpError as exc:
            raise _translate_http_error(exc) from exc

        message_id = response.get("id") if isinstance(response, dict) else None
        logger.debug("Gmail accepted message id=%s", message_id)
        return message_id


def _translate_http_error(exc: HttpError) -> MailSendError:
    """Pull ``error.code``/``error.message`` out of a Google API error body."""
    code: int | None = None
    api_message: str | None = None
    content = exc.content
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    try:
        payload = json.loads(content)
    except (TypeError, ValueError):
        payload = None

    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        error = payload["error"]
        try:
            code = int(error.get("code"))
        except (TypeError, ValueError):
            code = None
        api_message = str(error["message"]) if error.get("message") else None

    if code is None and exc.resp is not None:
        code = int(exc.resp.status)
    return MailSendError(str(exc), code=code, api_message=api_message)
