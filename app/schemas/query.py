"""Schemas for the chat endpoint."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HistoryTurn(BaseModel):
    role: str = Field(..., description="user or assistant; other roles are ignored.")
    content: str = Field("", description="Message text.")


class ChatRequest(BaseModel):
    """Request body for POST /chat. History is sent by the client, oldest first."""

    message: str = Field(..., min_length=1, description="User question.")
    history: list[HistoryTurn] = Field(default_factory=list, description="Prior conversation turns.")

    @field_validator("message")
    @classmethod
    def _strip_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message must not be blank")
        return v


class CitationOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_id: str = Field(..., alias="sourceId", description="Opaque source (file) id from the completion service.")
    display_name: str = Field(..., alias="displayName", description="File name, or source:<id> when unresolved.")
    preview: str = Field("", description="Quoted snippet, if the service returned one.")


class ChatResponse(BaseModel):
    """Response for POST /chat."""

    text: str = Field(..., description="Answer text (never empty).")
    citations: list[CitationOut] = Field(default_factory=list)
    grounding_used: bool = Field(..., alias="groundingUsed", description="Whether the answer used document search.")
    model_used: str = Field(..., alias="modelUsed")
    notice: str | None = Field(None, description="Set when a fallback strategy produced the answer.")
    diagnostic: dict[str, Any] | None = Field(None, description="Attempt log; only present when DEBUG is set.")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "text": "Close valve V-2 before opening the bypass.",
                    "citations": [{"sourceId": "file-abc", "displayName": "bypass_procedure.pdf", "preview": ""}],
                    "groundingUsed": True,
                    "modelUsed": "gpt-4o-mini",
                }
            ]
        },
    )


class ErrorResponse(BaseModel):
    """Error body for POST /chat and POST /ingest."""

    model_config = ConfigDict(populate_by_name=True)

    error_kind: str = Field(..., alias="errorKind")
    message: str
    detail: dict[str, Any] | None = Field(None, description="Internal detail; only present when DEBUG is set.")
