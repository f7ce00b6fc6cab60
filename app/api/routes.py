"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import logging

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from app.api.handlers import handle_chat, handle_ingest
from app.core.note_store import add_note, clear_notes, list_notes, remove_note
from app.schemas.notes import NoteCreate, NoteList
from app.schemas.query import ChatRequest, ChatResponse, ErrorResponse

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Operabot gateway running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Chat ---

@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    responses={401: {"model": ErrorResponse}, 402: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["chat"],
    summary="Ask a question",
    description="Answer from the procedure documents when document search is available, falling back to plain model answers. 422 on invalid body.",
)
async def post_chat(body: ChatRequest) -> ChatResponse | JSONResponse:
    logger.info("[api:post_chat] IN  message_len=%d history_len=%d", len(body.message), len(body.history))
    return await handle_chat(body)


# --- Shared notes ---

@router.get("/memory", response_model=NoteList, tags=["memory"], summary="List shared notes")
def get_notes() -> NoteList:
    return NoteList(items=list_notes())


@router.post("/memory", tags=["memory"], summary="Save a shared note")
def post_note(body: NoteCreate) -> dict:
    """Save a note (trimmed, max 500 chars, duplicates ignored). 400 if text is empty."""
    try:
        saved = add_note(body.text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"ok": True, "saved": saved}


@router.delete("/memory", tags=["memory"], summary="Delete one note, or all notes")
def delete_notes(id: str | None = None) -> dict:
    """With ?id=... removes that note; without it clears every note."""
    if not id:
        clear_notes()
        return {"ok": True, "cleared": True}
    count = remove_note(id)
    return {"ok": True, "removed": id, "count": count}


# --- Document index ---

@router.post(
    "/ingest",
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["ingest"],
    summary="Sync the document folder into the vector store",
)
def post_ingest(
    skip: int = Query(0, ge=0, description="Skip the first N PDFs of the sorted folder."),
    limit: int | None = Query(None, ge=1, description="Sync at most N PDFs."),
):
    logger.info("[api:post_ingest] IN  skip=%d limit=%s", skip, limit)
    return handle_ingest(skip, limit)
