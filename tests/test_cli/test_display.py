"""Tests for LogView and draft_summary — output goes to an in-memory rich Console."""

import io
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from rich.console import Console

from src.agent.activity_log import ActivityLog, LogCategory
from src.agent.sender import BulkSender
from src.cli.display import LogView, draft_summary
from src.gmail.types import Attachment, ComposeDraft


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=200), buffer


# ── LogView ─────────────────────────────────────────────────────────────────────


class TestLogView:
    def test_prints_message_text(self) -> None:
        console, buffer = _console()
        log = ActivityLog()
        LogView(console).attach(log)

        log.add("Email successfully sent to a@x.com.", LogCategory.SUCCESS)

        assert "Email successfully sent to a@x.com." in buffer.getvalue()

    def test_bracketed_text_is_printed_literally(self) -> None:
        console, buffer = _console()
        log = ActivityLog()
        LogView(console).attach(log)

        log.add("Cannot attach [/red]report[bold].pdf", LogCategory.ERROR)

        assert "Cannot attach [/red]report[bold].pdf" in buffer.getvalue()

    async def test_bracketed_recipient_does_not_abort_the_batch(self) -> None:
        console, buffer = _console()
        log = ActivityLog()
        LogView(console).attach(log)
        mailer = MagicMock()
        mailer.send_raw = AsyncMock(return_value="msg_id")

        ok = await BulkSender(log, sleep=AsyncMock()).run(
            ComposeDraft(recipients_raw="[/x], ok@x.com"), sender_email="me@x.com", mailer=mailer
        )

        assert ok is True
        mailer.send_raw.assert_awaited_once()
        output = buffer.getvalue()
        assert "Skipping invalid email format: [/x]" in output
        assert "Email successfully sent to ok@x.com." in output


# ── draft_summary ───────────────────────────────────────────────────────────────


class TestDraftSummary:
    def test_renders_fields_literally(self, tmp_path: Path) -> None:
        console, buffer = _console()
        path = tmp_path / "[b]flyer.pdf"
        path.write_bytes(b"x" * 1536)
        draft = ComposeDraft(
            subject="Sale [/i] now",
            body_html="Hello [red]there",
            attachments=[Attachment(path=path, filename=path.name, mime_type="application/pdf", size=1536)],
        )

        console.print(draft_summary(draft, 3))

        output = buffer.getvalue()
        assert "Sale [/i] now" in output
        assert "Hello [red]there" in output
        assert "[b]flyer.pdf (application/pdf, 1.5 KB)" in output
