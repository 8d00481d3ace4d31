"""Meeting transcript ingestion: split long text into CRM-sized notes."""

from __future__ import annotations

import logging
from datetime import date

from client_assistant.services.ghl_client import GHLClient

logger = logging.getLogger(__name__)

# The CRM rejects note bodies above this many characters
MAX_NOTE_CHARS = 64_000


def split_transcript(text: str, limit: int = MAX_NOTE_CHARS) -> list[str]:
    """Split *text* into ordered chunks of at most *limit* characters.

    A chunk ends at its last newline when that newline falls past half the
    budget, so lines are rarely cut in two.  Joining the chunks gives back
    *text* exactly.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    remaining = text
    while remaining:
        chunk = remaining[:limit]
        if len(remaining) > limit:
            last_newline = chunk.rfind("\n")
            if last_newline > limit * 0.5:
                chunk = chunk[:last_newline]
        chunks.append(chunk)
        remaining = remaining[len(chunk):]
    return chunks


def _header(meeting_type: str, date_label: str, part: int | None = None, total: int | None = None) -> str:
    if part is None:
        return f"--- {meeting_type} | {date_label} ---\n\n"
    return f"--- {meeting_type} | {date_label} | Part {part} of {total} ---\n\n"


def build_note_bodies(
    text: str,
    meeting_type: str = "Meeting",
    meeting_date: str | None = None,
    limit: int = MAX_NOTE_CHARS,
) -> list[str]:
    """Return note bodies, each with a header, each within *limit* characters."""
    meeting_type = meeting_type or "Meeting"
    today = date.today()
    date_label = meeting_date or f"{today.month}/{today.day}/{today.year}"

    single = _header(meeting_type, date_label)
    if len(single) + len(text) <= limit:
        return [single + text]

    # Reserve room for the widest "Part i of n" header
    reserve = len(_header(meeting_type, date_label, 9999, 9999))
    chunks = split_transcript(text, limit - reserve)
    total = len(chunks)
    return [
        _header(meeting_type, date_label, i, total) + chunk
        for i, chunk in enumerate(chunks, start=1)
    ]


async def ingest_transcript(
    crm: GHLClient,
    client_id: str,
    text: str,
    *,
    meeting_type: str = "Meeting",
    meeting_date: str | None = None,
) -> int:
    """Store *text* as one or more notes on the contact; returns notes created.

    Notes are created in order so they read correctly in the CRM timeline.

    Raises:
        ValueError: if the client id or transcript is empty.
        GHLAPIError: if the CRM rejects a note.
    """
    if not client_id:
        raise ValueError("Missing client id")
    text = (text or "").strip()
    if not text:
        raise ValueError("Transcript is empty")

    bodies = build_note_bodies(text, meeting_type, meeting_date)
    for body in bodies:
        await crm.create_note(client_id, body)
    logger.info("Stored transcript for %s as %d note(s)", client_id, len(bodies))
    return len(bodies)
