"""In-memory activity log — the user-visible audit trail for one session."""

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

logger = logging.getLogger(__name__)


class LogCategory(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    AI = "ai-generation"
    AUTH = "auth"


_LEVEL: dict[LogCategory, int] = {
    LogCategory.INFO: logging.INFO,
    LogCategory.SUCCESS: logging.INFO,
    LogCategory.ERROR: logging.ERROR,
    LogCategory.AI: logging.INFO,
    LogCategory.AUTH: logging.DEBUG,
}


def _new_entry_id() -> str:
    # Hex nanosecond clock plus a random suffix keeps ids unique within a session.
    return f"{time.time_ns():x}-{secrets.token_hex(4)}"


@dataclass(frozen=True)
class LogEntry:
    message: str
    category: LogCategory
    id: str = field(default_factory=_new_entry_id)
    timestamp: datetime = field(default_factory=datetime.now)


#: Called with every new entry, in insertion order.
LogSubscriber = Callable[[LogEntry], None]


class ActivityLog:
    """Append-only, insertion-ordered record of bootstrap, auth, send and AI events.

    Entries are never mutated or removed and the log has no size cap; it lives
    as long as the session does.  Every entry is also mirrored to the
    standard ``logging`` module and pushed to subscribers (e.g. the terminal
    log view).
    """

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []
        self._subscribers: list[LogSubscriber] = []

    def add(self, message: str, category: LogCategory) -> LogEntry:
        entry = LogEntry(message=message, category=category)
        self._entries.append(entry)
        logger.log(_LEVEL[category], "[%s] %s", category.value.upper(), message)
        for subscriber in self._subscribers:
            subscriber(entry)
        return entry

    def subscribe(self, subscriber: LogSubscriber) -> None:
        self._subscribers.append(subscriber)

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
