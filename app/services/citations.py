"""
Citation resolution: opaque source ids -> human-readable file names.

Best effort by contract: a failed lookup yields the "source:<id>" placeholder
and never fails the request. Results are memoized for the current query only.
"""

import logging
from typing import Awaitable, Callable

from app.agent.models import Citation, placeholder_name

logger = logging.getLogger(__name__)


class CitationResolver:
    def __init__(self, lookup: Callable[[str], Awaitable[str]]) -> None:
        self._lookup = lookup
        self._names: dict[str, str] = {}

    def reset(self) -> None:
        """Forget memoized names; called at the start of every query."""
        self._names.clear()

    async def resolve(self, source_id: str) -> str:
        if source_id in self._names:
            return self._names[source_id]
        try:
            name = (await self._lookup(source_id) or "").strip() or placeholder_name(source_id)
        except Exception as e:
            logger.warning("[citations:resolve] lookup failed source_id=%s: %s", source_id, e)
            name = placeholder_name(source_id)
        self._names[source_id] = name
        return name

    async def resolve_all(self, citations: list[Citation]) -> list[Citation]:
        """Fill in display names still set to the placeholder; others pass through."""
        resolved = []
        for c in citations:
            if c.display_name == placeholder_name(c.source_id):
                c = Citation(source_id=c.source_id, display_name=await self.resolve(c.source_id), preview=c.preview)
            resolved.append(c)
        logger.info("[citations:resolve_all] OUT citations=%d lookups=%d", len(resolved), len(self._names))
        return resolved
