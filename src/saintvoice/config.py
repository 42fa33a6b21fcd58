"""Startup configuration for the consultation call widget.

Values come from the environment (a local .env is loaded first). A missing
API key or agent id is a startup failure rather than a call that silently
never starts.
"""

import os
import sys
import logging
from dataclasses import dataclass

from dotenv import load_dotenv

from saintvoice.registration import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

REQUIRED_VARS = [
    "RETELL_API_KEY",
    "RETELL_AGENT_ID",
]

OPTIONAL_VARS = [
    "RETELL_BASE_URL",
    "REGISTRATION_TIMEOUT",
    "CALL_START_TIMEOUT",
    "CALL_STOP_TIMEOUT",
    "MIC_PERMISSION_TIMEOUT",
    "CLEAR_TRANSCRIPT_ON_END",
    "LOG_LEVEL",
]

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    api_key: str
    agent_id: str
    base_url: str = DEFAULT_BASE_URL
    registration_timeout: float | None = 10.0
    start_timeout: float | None = None
    stop_timeout: float | None = None
    permission_timeout: float | None = None
    clear_transcript_on_end: bool = False
    log_level: str = "INFO"


def validate_config() -> None:
    """Fail fast before the widget is wired.

    A missing API key or agent id exits with status 1 and a FATAL message on
    stderr. Unset optional variables only log a warning.
    """
    load_dotenv()
    missing = [var for var in REQUIRED_VARS if not os.getenv(var)]

    if missing:
        print(
            f"\nFATAL: Missing required environment variables:\n"
            f"  {', '.join(missing)}\n"
            f"\nSet them in .env or the hosting environment.\n",
            file=sys.stderr,
        )
        sys.exit(1)

    for var in OPTIONAL_VARS:
        if not os.getenv(var):
            logger.warning("Optional env var %s is not set", var)


def _timeout(name: str, default: float | None) -> float | None:
    """Parse a timeout in seconds. Empty means default; "none" or "0" means no timeout."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    if raw.lower() == "none":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value or None


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE_VALUES


def load_settings() -> Settings:
    """Build Settings from the environment. Call validate_config() first in entry points."""
    load_dotenv()
    return Settings(
        api_key=os.getenv("RETELL_API_KEY", ""),
        agent_id=os.getenv("RETELL_AGENT_ID", ""),
        base_url=os.getenv("RETELL_BASE_URL") or DEFAULT_BASE_URL,
        registration_timeout=_timeout("REGISTRATION_TIMEOUT", 10.0),
        start_timeout=_timeout("CALL_START_TIMEOUT", None),
        stop_timeout=_timeout("CALL_STOP_TIMEOUT", None),
        permission_timeout=_timeout("MIC_PERMISSION_TIMEOUT", None),
        clear_transcript_on_end=_flag("CLEAR_TRANSCRIPT_ON_END"),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(level: str | None = None) -> None:
    level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
