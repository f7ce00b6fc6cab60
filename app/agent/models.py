"""
Domain types shared by the orchestrator: query in, answer out.
"""

from dataclasses import dataclass, field
from typing import Any

PLACEHOLDER_PREFIX = "source:"


def placeholder_name(source_id: str) -> str:
    """Display name used until (or instead of) a resolved file name."""
    return f"{PLACEHOLDER_PREFIX}{source_id}"


@dataclass(frozen=True)
class Turn:
    role: str
    content: str


@dataclass(frozen=True)
class Query:
    """One validated user question plus prior conversation turns."""

    text: str
    conversation_history: tuple[Turn, ...] = ()


@dataclass(frozen=True)
class Citation:
    source_id: str
    display_name: str
    preview: str = ""


@dataclass
class Answer:
    """Final contract returned to the caller. text is never empty."""

    text: str
    citations: list[Citation]
    grounding_used: bool
    model_used: str
    notice: str | None = None
    diagnostic: dict[str, Any] | None = field(default=None)
