"""Runtime configuration, read from the environment (and .env via python-dotenv)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_SIGN_IN_TIMEOUT = 120


def _parse_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s %r; defaulting to %d", name, raw, default)
        return default


@dataclass
class MailerConfig:
    """Identifiers and secrets the session needs.

    Missing values are not an error here: the feature that needs them is
    disabled at startup and the reason shows up in the activity log.
    """

    google_client_id: str = ""
    google_client_secret: str = ""
    anthropic_api_key: str = ""
    token_path: Path = field(default_factory=lambda: Path("data/google_token.json"))
    sign_in_timeout: int = _DEFAULT_SIGN_IN_TIMEOUT

    @classmethod
    def from_env(cls) -> MailerConfig:
        """Build MailerConfig from environment variables."""
        return cls(
            google_client_id=os.environ.get("GOOGLE_OAUTH_CLIENT_ID", ""),
            google_client_secret=os.environ.get("GOOGLE_OAUTH_CLIENT_SECRET", ""),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            token_path=Path(os.environ.get("GOOGLE_TOKEN_PATH", "data/google_token.json")),
            sign_in_timeout=_parse_int("SIGN_IN_TIMEOUT_SECONDS", _DEFAULT_SIGN_IN_TIMEOUT),
        )
