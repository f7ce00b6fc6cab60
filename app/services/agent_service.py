"""
Agent: orchestrate one question end to end.

Responsibility: Validate the inbound question into a Query, open a
per-request completion client, run the strategy cascade and return the
Answer. Called by the API; no HTTP status mapping here.
"""

import logging
from typing import Any

import httpx

from app.agent.graph import StrategyCascade
from app.agent.llm import CompletionClient
from app.agent.models import Answer, Query, Turn
from app.agent.retry import RetryPolicy
from app.agent.strategies import Strategy, default_strategies
from app.core.config import (
    LLM_API_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    RETRY_BASE_DELAY_MS,
    RETRY_MAX_ATTEMPTS,
)
from app.core.errors import ServiceUnavailableError
from app.services.citations import CitationResolver

logger = logging.getLogger(__name__)

HISTORY_ROLES = ("user", "assistant")


def build_query(message: str, history: list[dict[str, Any]] | None = None) -> Query:
    """
    Validate and freeze the inbound question. Raises ValueError on an empty message.
    History entries with unknown roles or empty content are dropped.
    """
    text = (message or "").strip() if isinstance(message, str) else ""
    if not text:
        raise ValueError("message is required")
    turns = []
    for m in history or []:
        if not isinstance(m, dict):
            continue
        role = str(m.get("role") or "").strip().lower()
        content = str(m.get("content") or "").strip()
        if role in HISTORY_ROLES and content:
            turns.append(Turn(role=role, content=content))
    return Query(text=text, conversation_history=tuple(turns))


async def answer_query(
    message: str | Query,
    history: list[dict[str, Any]] | None = None,
    *,
    strategies: list[Strategy] | None = None,
    retry_policy: RetryPolicy | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Answer:
    """
    Answer one question, given as text or as an already validated Query.
    Raises ValueError for invalid input, ServiceUnavailableError when the service
    is not configured, ExhaustedCascadeError when every strategy failed.
    """
    query = message if isinstance(message, Query) else build_query(message, history)
    if not OPENAI_API_KEY:
        raise ServiceUnavailableError("OPENAI_API_KEY is not set")
    if strategies is None:
        try:
            strategies = default_strategies()
        except ValueError as e:
            raise ServiceUnavailableError(f"invalid QUERY_STRATEGIES: {e}") from e
    if not strategies:
        raise ServiceUnavailableError("no query strategies configured")
    if retry_policy is None:
        try:
            retry_policy = RetryPolicy(RETRY_MAX_ATTEMPTS, RETRY_BASE_DELAY_MS)
        except ValueError as e:
            raise ServiceUnavailableError(f"invalid retry settings: {e}") from e

    logger.info(
        "[agent_service:answer_query] IN  message_len=%d history_len=%d strategies=%s",
        len(query.text), len(query.conversation_history), [s.describe() for s in strategies],
    )
    async with httpx.AsyncClient(
        base_url=OPENAI_BASE_URL,
        headers={"Authorization": f"Bearer {OPENAI_API_KEY}", "Content-Type": "application/json"},
        timeout=LLM_API_TIMEOUT,
        transport=transport,
    ) as http:
        client = CompletionClient(http)
        cascade = StrategyCascade(
            strategies,
            client,
            retry_policy,
            CitationResolver(client.file_display_name),
        )
        answer = await cascade.execute(query)
    logger.info(
        "[agent_service:answer_query] OUT model=%s grounded=%s citations=%d",
        answer.model_used, answer.grounding_used, len(answer.citations),
    )
    return answer
