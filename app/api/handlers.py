"""
API handlers: call services, map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Marshalling and exception-to-HTTP mapping.
Lives in the API layer so services stay free of FastAPI/HTTP types.
"""

import logging
from dataclasses import asdict
from typing import Any

from fastapi.responses import JSONResponse

from app.agent.models import Answer
from app.core.config import DEBUG, DOCUMENTS_DIR, VECTOR_STORE_ID
from app.core.errors import ExhaustedCascadeError, ServiceUnavailableError
from app.schemas.query import ChatRequest, ChatResponse, CitationOut, ErrorResponse
from app.services.agent_service import answer_query, build_query
from app.services.ingestion_service import NoDocumentsError, get_openai_client, sync_documents

logger = logging.getLogger(__name__)

INTERNAL_ERROR = (500, "internal", "Internal error. Please try again later.")

# last failure code -> (status, errorKind, user-facing message)
_FAILURE_STATUS = {
    "insufficient_quota": (402, "no_credit", "The completion service has no credit left. Check billing."),
    "rate_limited": (429, "rate_limited", "The assistant is busy right now. Try again in a moment."),
    "unauthorized": (401, "unauthorized", "The API key is invalid or lacks permission."),
}


def error_response(status: int, kind: str, message: str, detail: dict[str, Any] | None = None) -> JSONResponse:
    body = ErrorResponse(error_kind=kind, message=message, detail=detail if DEBUG else None)
    return JSONResponse(status_code=status, content=body.model_dump(by_alias=True, exclude_none=True))


def to_chat_response(answer: Answer) -> ChatResponse:
    return ChatResponse(
        text=answer.text,
        citations=[
            CitationOut(source_id=c.source_id, display_name=c.display_name, preview=c.preview)
            for c in answer.citations
        ],
        grounding_used=answer.grounding_used,
        model_used=answer.model_used,
        notice=answer.notice,
        diagnostic=answer.diagnostic if DEBUG else None,
    )


async def handle_chat(body: ChatRequest) -> ChatResponse | JSONResponse:
    """
    Run the orchestrator for one question. Users only ever see fixed messages;
    internal reasons go to the log (and to `detail` when DEBUG is set).
    """
    try:
        query = build_query(body.message, [t.model_dump() for t in body.history])
    except ValueError as e:
        return error_response(400, "invalid_request", str(e))
    try:
        answer = await answer_query(query)
    except ServiceUnavailableError as e:
        logger.error("[handlers:handle_chat] service unavailable: %s", e.message)
        return error_response(503, "service_unavailable", "The assistant is not configured.", {"reason": e.message})
    except ExhaustedCascadeError as e:
        code = getattr(e.last_failure, "code", None)
        status, kind, message = _FAILURE_STATUS.get(code, INTERNAL_ERROR)
        logger.error("[handlers:handle_chat] %s (status=%d attempts=%s)", e, status, e.attempts)
        return error_response(status, kind, message, {"reason": str(e), "attempts": e.attempts})
    except Exception as e:
        logger.exception("Chat failed")
        status, kind, message = INTERNAL_ERROR
        return error_response(status, kind, message, {"reason": f"{type(e).__name__}: {e}"})
    return to_chat_response(answer)


def handle_ingest(skip: int = 0, limit: int | None = None) -> dict | JSONResponse:
    """Sync DOCUMENTS_DIR into the configured vector store (blocking; run off the event loop)."""
    if not VECTOR_STORE_ID:
        return error_response(503, "service_unavailable", "The document index is not configured.", {"reason": "VECTOR_STORE_ID is not set"})
    try:
        client = get_openai_client()
    except RuntimeError as e:
        logger.error("[handlers:handle_ingest] %s", e)
        return error_response(503, "service_unavailable", "The assistant is not configured.", {"reason": str(e)})
    try:
        result = sync_documents(DOCUMENTS_DIR, VECTOR_STORE_ID, client=client, skip=skip, limit=limit)
    except NoDocumentsError as e:
        return error_response(404, "no_documents", str(e))
    except Exception as e:
        logger.exception("Ingest failed")
        status, kind, message = INTERNAL_ERROR
        return error_response(status, kind, message, {"reason": f"{type(e).__name__}: {e}"})
    return {"ok": True, "result": asdict(result)}
