"""
In-memory shared note store. One global list of short notes for the whole process.
"""

import logging
import secrets
import threading
import time
from typing import Any

from app.core.config import NOTE_MAX_CHARS, NOTES_MAX_ITEMS

logger = logging.getLogger(__name__)

# list of {"id": "mem_...", "text": str, "ts": int (ms)}, oldest first
_notes: list[dict[str, Any]] = []
_lock = threading.Lock()


def list_notes() -> list[dict[str, Any]]:
    """Return all notes, oldest first (copy so caller cannot mutate store)."""
    with _lock:
        out = [dict(n) for n in _notes]
    logger.info("[note_store:list_notes] OUT notes=%d", len(out))
    return out


def add_note(text: str) -> str:
    """
    Save a note and return the stored text. Raises ValueError if text is empty.
    Text is cut to NOTE_MAX_CHARS; a case-insensitive duplicate is not stored twice.
    When over NOTES_MAX_ITEMS the oldest notes are dropped.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("text is required")
    text = text[:NOTE_MAX_CHARS]
    with _lock:
        if any(n["text"].lower() == text.lower() for n in _notes):
            logger.info("[note_store:add_note] duplicate, not stored text_len=%d", len(text))
            return text
        _notes.append({"id": "mem_" + secrets.token_hex(5), "text": text, "ts": int(time.time() * 1000)})
        while len(_notes) > NOTES_MAX_ITEMS:
            _notes.pop(0)
        count = len(_notes)
    logger.info("[note_store:add_note] stored text_len=%d count=%d", len(text), count)
    return text


def remove_note(note_id: str) -> int:
    """Delete one note by id. Returns the number of notes left."""
    with _lock:
        _notes[:] = [n for n in _notes if n["id"] != note_id]
        count = len(_notes)
    logger.info("[note_store:remove_note] id=%s count=%d", note_id, count)
    return count


def clear_notes() -> None:
    with _lock:
        _notes.clear()
    logger.info("[note_store:clear_notes] cleared")
