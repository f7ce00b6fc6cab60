"""
Response normalization: any completion-service reply -> {text, citations}.

Shapes seen in practice:
- Responses API: ``output_text`` plus ``output[].content[]`` blocks of type
  ``output_text`` whose ``annotations`` carry ``file_citation`` entries;
- Assistants-style messages: ``content[].text.value`` with
  ``text.annotations[].file_citation.file_id``;
- chat completions: ``choices[0].message.content``;
- an already-normalized pair ``{text, citations}``.

normalize() is total: it never raises and always returns non-empty text.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from app.agent.models import Citation, placeholder_name

logger = logging.getLogger(__name__)

NO_ANSWER_TEXT = "No answer was returned."


@dataclass
class NormalizedResponse:
    text: str
    citations: list[Citation] = field(default_factory=list)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _flattened_text(raw: dict[str, Any]) -> str:
    for key in ("output_text", "text"):
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    choices = _as_list(raw.get("choices"))
    if choices:
        content = _as_dict(_as_dict(choices[0]).get("message")).get("content")
        if isinstance(content, str) and content.strip():
            return content.strip()
    return ""


def _content_blocks(raw: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Every content block in document order, wherever the shape keeps them."""
    containers = [raw]
    containers.extend(_as_dict(item) for item in _as_list(raw.get("output")))
    containers.extend(_as_dict(item) for item in _as_list(raw.get("data")))
    for container in containers:
        for block in _as_list(container.get("content")):
            if isinstance(block, dict):
                yield block


def _block_text(block: dict[str, Any]) -> str:
    text = block.get("text")
    if isinstance(text, dict):
        text = text.get("value")
    return text.strip() if isinstance(text, str) else ""


def _block_annotations(block: dict[str, Any]) -> list[Any]:
    annotations = list(_as_list(block.get("annotations")))
    annotations.extend(_as_list(_as_dict(block.get("text")).get("annotations")))
    return annotations


def _citation_from(annotation: Any) -> Citation | None:
    ann = _as_dict(annotation)
    nested = _as_dict(ann.get("file_citation"))
    source_id = nested.get("file_id") or ann.get("file_id") or ann.get("source_id") or ann.get("sourceId")
    if not source_id:
        return None
    source_id = str(source_id)
    name = nested.get("filename") or ann.get("filename") or ann.get("display_name") or ann.get("displayName")
    preview = nested.get("quote") or ann.get("quote") or ann.get("preview") or ""
    return Citation(
        source_id=source_id,
        display_name=str(name) if name else placeholder_name(source_id),
        preview=str(preview),
    )


def normalize(raw: Any) -> NormalizedResponse:
    """
    1. Use a non-empty flattened text field when present.
    2. Otherwise join text-bearing content blocks with newlines.
    3. Collect citations from every block's annotations regardless of where the
       text came from; the first citation per source id wins.
    """
    data = _as_dict(raw)
    blocks = list(_content_blocks(data))

    text = _flattened_text(data)
    if not text:
        text = "\n".join(t for t in (_block_text(b) for b in blocks) if t)

    citations: list[Citation] = []
    seen: set[str] = set()
    annotations = [a for b in blocks for a in _block_annotations(b)]
    annotations.extend(_as_list(data.get("citations")))
    for annotation in annotations:
        citation = _citation_from(annotation)
        if citation is None or citation.source_id in seen:
            continue
        seen.add(citation.source_id)
        citations.append(citation)

    if not text:
        logger.warning("[normalizer] no text found in response keys=%s", sorted(data)[:10])
        text = NO_ANSWER_TEXT
    return NormalizedResponse(text=text, citations=citations)


def to_raw_response(normalized: NormalizedResponse) -> dict[str, Any]:
    """Wrap a normalized pair as a minimal Responses API payload."""
    return {
        "output_text": normalized.text,
        "output": [
            {
                "type": "message",
                "content": [
                    {
                        "type": "output_text",
                        "text": normalized.text,
                        "annotations": [
                            {
                                "type": "file_citation",
                                "file_id": c.source_id,
                                "filename": c.display_name,
                                "quote": c.preview,
                            }
                            for c in normalized.citations
                        ],
                    }
                ],
            }
        ],
    }
