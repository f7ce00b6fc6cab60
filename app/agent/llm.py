"""
Completion service client: OpenAI Responses API over httpx.

Covers the two call shapes the strategies need:
- synchronous: POST /responses and read the answer from the reply;
- job-based: POST /conversations, POST /responses with background=true,
  then GET /responses/{id} until the job is terminal.
Plus GET /files/{id}, used to turn cited file ids into file names.

Non-2xx replies raise CompletionServiceError with the service's structured
error fields; network problems surface as httpx errors. Classification into
attempt outcomes happens in app.agent.outcomes, not here.
"""

import logging
from typing import Any

import httpx

from app.agent.models import Query
from app.core.config import LLM_TEMPERATURE, SYSTEM_PROMPT
from app.core.errors import CompletionServiceError

logger = logging.getLogger(__name__)


def build_input(query: Query, include_history: bool = True) -> list[dict[str, str]]:
    """Conversation turns in Responses API input format, current question last."""
    turns: list[dict[str, str]] = []
    if include_history:
        turns.extend({"role": t.role, "content": t.content} for t in query.conversation_history)
    turns.append({"role": "user", "content": query.text})
    return turns


def file_search_tools(vector_store_id: str) -> list[dict[str, Any]]:
    return [{"type": "file_search", "vector_store_ids": [vector_store_id]}]


class CompletionClient:
    """Thin async wrapper over the completion service. One instance per request."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._http.request(method, path, json=payload)
        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}
        if response.status_code >= 400:
            err = data.get("error") if isinstance(data, dict) else None
            err = err if isinstance(err, dict) else {}
            logger.warning(
                "[llm:%s %s] error status=%d code=%s param=%s",
                method, path, response.status_code, err.get("code"), err.get("param"),
            )
            raise CompletionServiceError(
                status=response.status_code,
                message=err.get("message") or "API error",
                code=err.get("code") or err.get("type"),
                param=err.get("param"),
                data=data,
            )
        return data if isinstance(data, dict) else {"raw": data}

    async def create_response(
        self,
        query: Query,
        model: str,
        *,
        vector_store_id: str | None = None,
    ) -> dict[str, Any]:
        """Synchronous request/response. Returns the raw Responses API payload."""
        payload: dict[str, Any] = {
            "model": model,
            "instructions": SYSTEM_PROMPT,
            "input": build_input(query),
            "temperature": LLM_TEMPERATURE,
        }
        if vector_store_id:
            payload["tools"] = file_search_tools(vector_store_id)
        logger.info(
            "[llm:create_response] IN  model=%s grounded=%s turns=%d",
            model, bool(vector_store_id), len(payload["input"]),
        )
        data = await self._request("POST", "/responses", payload)
        logger.info("[llm:create_response] OUT id=%s status=%s", data.get("id"), data.get("status"))
        return data

    async def submit_job(
        self,
        query: Query,
        model: str,
        *,
        vector_store_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a conversation holding the history, then enqueue a background response on it."""
        conversation = await self._request(
            "POST",
            "/conversations",
            {"items": [{"type": "message", "role": t.role, "content": t.content} for t in query.conversation_history]},
        )
        payload: dict[str, Any] = {
            "model": model,
            "instructions": SYSTEM_PROMPT,
            "conversation": conversation.get("id"),
            "input": build_input(query, include_history=False),
            "temperature": LLM_TEMPERATURE,
            "background": True,
            "store": True,
        }
        if vector_store_id:
            payload["tools"] = file_search_tools(vector_store_id)
        logger.info("[llm:submit_job] IN  model=%s conversation=%s grounded=%s", model, conversation.get("id"), bool(vector_store_id))
        data = await self._request("POST", "/responses", payload)
        logger.info("[llm:submit_job] OUT id=%s status=%s", data.get("id"), data.get("status"))
        return data

    async def retrieve_response(self, response_id: str) -> dict[str, Any]:
        """Fetch a response (job) by id; carries status and, once completed, the output."""
        return await self._request("GET", f"/responses/{response_id}")

    async def file_display_name(self, file_id: str) -> str:
        """Look up the uploaded file name for a cited file id."""
        data = await self._request("GET", f"/files/{file_id}")
        name = (data.get("filename") or "").strip()
        if not name:
            raise CompletionServiceError(status=200, message=f"file {file_id} has no filename", data=data)
        return name
