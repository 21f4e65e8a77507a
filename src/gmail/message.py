"""Recipient parsing and raw RFC 2822 message construction for the Gmail send API."""

import base64
import re
import threading
import time
from collections.abc import Sequence

from src.gmail.types import Attachment

_RECIPIENT_SEPARATORS = re.compile(r"[\n,;]+")
_EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

_BOUNDARY_PREFIX = "----="
_SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]

_boundary_lock = threading.Lock()
_last_boundary_ms = 0


# ── Recipients ─────────────────────────────────────────────────────────────────


def split_recipients(raw: str) -> list[str]:
    """Split free text on newlines, commas and semicolons.

    Returns the trimmed, non-empty tokens in their original order.
    """
    return [token.strip() for token in _RECIPIENT_SEPARATORS.split(raw) if token.strip()]


def is_valid_email(address: str) -> bool:
    """Loose syntax check: local@domain.suffix with no whitespace or extra '@'."""
    return _EMAIL_PATTERN.fullmatch(address) is not None


def format_file_size(num_bytes: int, decimals: int = 2) -> str:
    """Render a byte count for humans: 0 → '0 Bytes', 1536 → '1.5 KB'."""
    if num_bytes == 0:
        return "0 Bytes"
    precision = max(decimals, 0)
    exponent = 0
    while exponent < len(_SIZE_UNITS) - 1 and num_bytes >= 1024 ** (exponent + 1):
        exponent += 1
    value = round(num_bytes / 1024**exponent, precision)
    text = f"{value:.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[exponent]}"


# ── Message construction ───────────────────────────────────────────────────────


def make_boundary() -> str:
    """Return '----=' + hex millisecond timestamp, never repeating within a process."""
    global _last_boundary_ms
    with _boundary_lock:
        now_ms = max(time.time_ns() // 1_000_000, _last_boundary_ms + 1)
        _last_boundary_ms = now_ms
    return f"{_BOUNDARY_PREFIX}{now_ms:x}"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def build_raw_message(
    sender: str,
    recipient: str,
    subject: str,
    body: str,
    attachments: Sequence[Attachment] = (),
    *,
    boundary: str | None = None,
) -> str:
    """Build a multipart/mixed message with an HTML part and one part per attachment.

    The subject is RFC 2047 base64-encoded, the body has newlines turned into
    ``<br>`` and every part is base64 with CRLF line endings.  Attachments are
    read fully into memory here.

    Example::

        raw = build_raw_message("me@example.com", "you@example.com", "Hi", "Hello\\nthere")
        gmail_raw = encode_base64url(raw)
    """
    boundary = boundary or make_boundary()
    html = body.replace("\n", "<br>")

    parts = [
        f"From: <{sender}>\r\n",
        f"To: <{recipient}>\r\n",
        f"Subject: =?utf-8?B?{_b64(subject.encode('utf-8'))}?=\r\n",
        "MIME-Version: 1.0\r\n",
        f'Content-Type: multipart/mixed; boundary="{boundary}"\r\n\r\n',
        f"--{boundary}\r\n",
        'Content-Type: text/html; charset="UTF-8"\r\n',
        "Content-Transfer-Encoding: base64\r\n\r\n",
        f"{_b64(html.encode('utf-8'))}\r\n",
    ]
    for attachment in attachments:
        parts += [
            f"--{boundary}\r\n",
            f'Content-Type: {attachment.mime_type}; name="{attachment.filename}"\r\n',
            f'Content-Disposition: attachment; filename="{attachment.filename}"\r\n',
            "Content-Transfer-Encoding: base64\r\n\r\n",
            f"{_b64(attachment.read_bytes())}\r\n",
        ]
    parts.append(f"--{boundary}--")
    return "".join(parts)


def encode_base64url(raw: str) -> str:
    """RFC 4648 §5 encoding ('-' and '_', no '=' padding) as the send API expects."""
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")
