"""Data types shared across the compose and send modules."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

_DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class UserIdentity:
    """The signed-in Google account. Populated on sign-in, cleared on sign-out."""

    email: str
    display_name: str | None = None


@dataclass(frozen=True)
class Attachment:
    """A file queued for sending. Contents are read only at dispatch time."""

    path: Path
    filename: str
    mime_type: str
    size: int = 0

    @classmethod
    def from_path(cls, path: Path) -> Attachment:
        """Build an Attachment from a file on disk, guessing its MIME type.

        Raises:
            FileNotFoundError: if ``path`` is not an existing file.
        """
        if not path.is_file():
            raise FileNotFoundError(f"No such file: {path}")
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            path=path,
            filename=path.name,
            mime_type=mime_type or _DEFAULT_MIME_TYPE,
            size=path.stat().st_size,
        )

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


@dataclass
class ComposeDraft:
    """What the user is composing.

    Mutated by compose commands; the send pipeline only reads it.
    """

    recipients_raw: str = ""
    subject: str = ""
    body_html: str = ""
    attachments: list[Attachment] = field(default_factory=list)


class SendOutcome(str, Enum):
    """Per-recipient result of a bulk send. Surfaced only through the activity log."""

    SKIPPED_INVALID_ADDRESS = "skipped-invalid-address"
    SENT = "sent"
    FAILED = "failed"
