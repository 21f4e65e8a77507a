"""Terminal rendering of the activity log and the compose draft."""

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from src.agent.activity_log import ActivityLog, LogCategory, LogEntry
from src.gmail.message import format_file_size
from src.gmail.types import ComposeDraft

_STYLE: dict[LogCategory, str] = {
    LogCategory.INFO: "white",
    LogCategory.SUCCESS: "green",
    LogCategory.ERROR: "red",
    LogCategory.AI: "magenta",
    LogCategory.AUTH: "cyan",
}


class LogView:
    """Passive view: prints every new log entry as it is appended."""

    def __init__(self, console: Console) -> None:
        self._console = console

    def attach(self, log: ActivityLog) -> None:
        log.subscribe(self.render)

    def render(self, entry: LogEntry) -> None:
        # Messages are plain text, never markup.
        line = Text.assemble(
            (f"{entry.timestamp:%H:%M:%S}", "dim"),
            " ",
            (entry.message, _STYLE[entry.category]),
        )
        self._console.print(line, highlight=False)


def draft_summary(draft: ComposeDraft, recipient_count: int) -> Table:
    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value", max_width=80)
    table.add_row("Subject", Text(draft.subject))
    table.add_row("Recipients", str(recipient_count))
    preview = draft.body_html if len(draft.body_html) <= 200 else draft.body_html[:200] + "…"
    table.add_row("Body", Text(preview))
    for attachment in draft.attachments:
        table.add_row(
            "Attachment",
            Text(f"{attachment.filename} ({attachment.mime_type}, {format_file_size(attachment.size)})"),
        )
    return table
