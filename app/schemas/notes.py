"""Schemas for the shared note endpoints."""

from pydantic import BaseModel, Field


class NoteCreate(BaseModel):
    """Request body for POST /memory."""

    text: str = Field("", description="Note text; trimmed and cut to 500 characters.")


class Note(BaseModel):
    id: str = Field(..., description="Note id, e.g. mem_k3j2h1")
    text: str
    ts: int = Field(..., description="Creation time, milliseconds since the epoch.")


class NoteList(BaseModel):
    ok: bool = True
    items: list[Note]

    model_config = {
        "json_schema_extra": {
            "examples": [{"ok": True, "items": [{"id": "mem_k3j2h1", "text": "Shift handover is at 7:00", "ts": 1760000000000}]}]
        }
    }
