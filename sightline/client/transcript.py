"""Transcript aggregation.

Merges streamed user transcripts and agent text deltas into an ordered,
deduplicated log of entries.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum

AGENT_DEDUP_WINDOW = 4


class TranscriptRole(str, Enum):
    USER = "user"
    AGENT = "agent"
    EVENT = "event"


@dataclass(frozen=True, slots=True)
class TranscriptEntry:
    id: int
    role: TranscriptRole
    text: str


def normalize_transcript_text(text: str) -> str:
    """Collapse whitespace runs and trim."""
    return " ".join(text.split())


class TranscriptAggregator:
    """Ordered transcript log with a user partial buffer and an agent accumulator."""

    def __init__(self) -> None:
        self._entries: list[TranscriptEntry] = []
        self._ids = itertools.count(1)
        self.user_partial = ""
        self.agent_buffer = ""

    @property
    def entries(self) -> list[TranscriptEntry]:
        return list(self._entries)

    def append(self, role: TranscriptRole, text: str) -> TranscriptEntry | None:
        """Commit an entry unless it is blank or a duplicate."""
        normalized = normalize_transcript_text(text)
        if not normalized:
            return None

        last = self._entries[-1] if self._entries else None
        if last is not None and last.role is role and last.text == normalized:
            return None

        if role is TranscriptRole.AGENT:
            agent_entries = [entry for entry in self._entries if entry.role is role]
            recent = agent_entries[-AGENT_DEDUP_WINDOW:]
            if any(normalize_transcript_text(entry.text) == normalized for entry in recent):
                return None

        entry = TranscriptEntry(id=next(self._ids), role=role, text=normalized)
        self._entries.append(entry)
        return entry

    def append_event(self, text: str) -> TranscriptEntry | None:
        return self.append(TranscriptRole.EVENT, text)

    def on_user_transcript(self, text: str, finished: bool) -> None:
        # Upstream sends the full text so far, not a delta
        self.user_partial = text
        if finished and text.strip():
            self.flush_user_partial()

    def on_agent_delta(self, text: str) -> None:
        if not text:
            return
        if self.agent_buffer and text.startswith(self.agent_buffer):
            self.agent_buffer = text
        else:
            self.agent_buffer += text

    def on_turn_complete(self) -> None:
        self.flush_user_partial()
        self.flush_agent_buffer()

    def on_interrupted(self) -> None:
        self.flush_user_partial()

    def on_session_closed(self) -> None:
        self.flush_user_partial()
        self.agent_buffer = ""

    def flush_user_partial(self) -> None:
        partial = self.user_partial
        self.user_partial = ""
        if partial.strip():
            self.append(TranscriptRole.USER, partial)

    def flush_agent_buffer(self) -> None:
        text = self.agent_buffer
        self.agent_buffer = ""
        if text.strip():
            self.append(TranscriptRole.AGENT, text)

    def clear(self) -> None:
        self._entries.clear()
        self.user_partial = ""
        self.agent_buffer = ""
