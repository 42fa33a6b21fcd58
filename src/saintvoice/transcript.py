import logging
from collections.abc import Mapping
from enum import Enum

logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_AGENT = "agent"


class TranscriptShape(Enum):
    SEQUENCE = "sequence"
    SINGLE = "single"
    TEXT = "text"
    UNRECOGNIZED = "unrecognized"


def classify(value) -> TranscriptShape:
    """Decide which normalization rule applies to a raw transcript value.

    An empty string counts as unrecognized: there is nothing to show and the
    current transcript should stay on screen. An empty list is a real (empty)
    snapshot.
    """
    if isinstance(value, (list, tuple)):
        return TranscriptShape.SEQUENCE
    if isinstance(value, Mapping):
        return TranscriptShape.SINGLE
    if isinstance(value, str) and value:
        return TranscriptShape.TEXT
    return TranscriptShape.UNRECOGNIZED


def _split_lines(text: str) -> list[dict]:
    return [
        {"role": ROLE_AGENT, "content": line.strip()}
        for line in text.split("\n")
        if line.strip()
    ]


def normalize(payload) -> list[dict] | None:
    """Convert an ``update`` payload into an ordered list of transcript entries.

    Returns None when the payload carries nothing usable, meaning the caller
    keeps whatever transcript it already shows. Never raises.
    """
    if not isinstance(payload, Mapping):
        logger.debug("Ignoring update with non-mapping payload: %r", type(payload))
        return None

    value = payload.get("transcript")
    shape = classify(value)

    if shape is TranscriptShape.SEQUENCE:
        return list(value)
    if shape is TranscriptShape.SINGLE:
        return [value]
    if shape is TranscriptShape.TEXT:
        return _split_lines(value)

    logger.debug("Ignoring update with unrecognized transcript: %r", type(value))
    return None


def to_plain_text(entries: list[dict]) -> str:
    """Render a transcript snapshot the way the consultation panel reads.

    Agent lines are prefixed with "Consultant:", user lines with "You:".
    Entries with any other role are skipped.
    """
    if not entries:
        return ""

    lines = []
    for entry in entries:
        role = entry.get("role", "")
        if role == ROLE_AGENT:
            lines.append(f"Consultant: {entry.get('content', '')}")
        elif role == ROLE_USER:
            lines.append(f"You: {entry.get('content', '')}")
    return "\n".join(lines)


def last_agent_line(entries: list[dict]) -> str:
    for entry in reversed(entries or []):
        if entry.get("role") == ROLE_AGENT:
            return entry.get("content", "")
    return ""
