"""
Unit tests for response normalization across the completion service's reply shapes.
"""

import pytest

from app.agent.models import Citation
from app.services.normalizer import NO_ANSWER_TEXT, NormalizedResponse, normalize, to_raw_response


def responses_api(text_blocks, annotations=None, output_text=""):
    content = [{"type": "output_text", "text": t, "annotations": []} for t in text_blocks]
    if annotations and content:
        content[0]["annotations"] = annotations
    return {
        "id": "resp_1",
        "status": "completed",
        "output_text": output_text,
        "output": [
            {"type": "file_search_call", "id": "fs_1", "status": "completed"},
            {"type": "message", "role": "assistant", "content": content},
        ],
    }


class TestNormalizeText:
    def test_block_text_used_when_flattened_field_empty(self) -> None:
        raw = responses_api(["Procedure X"], annotations=[{"type": "file_citation", "file_id": "doc1", "index": 3}])
        out = normalize(raw)
        assert out.text == "Procedure X"
        assert out.citations == [Citation(source_id="doc1", display_name="source:doc1", preview="")]

    def test_flattened_field_preferred(self) -> None:
        raw = responses_api(["block text"], output_text="Flat answer")
        assert normalize(raw).text == "Flat answer"

    def test_blocks_joined_with_newlines_in_order(self) -> None:
        raw = responses_api(["First.", "", "Second."])
        assert normalize(raw).text == "First.\nSecond."

    def test_assistants_message_shape(self) -> None:
        raw = {
            "content": [
                {
                    "type": "text",
                    "text": {
                        "value": "Open valve V-1.",
                        "annotations": [
                            {"type": "file_citation", "text": "[1]", "file_citation": {"file_id": "file-a", "quote": "valve V-1"}}
                        ],
                    },
                }
            ]
        }
        out = normalize(raw)
        assert out.text == "Open valve V-1."
        assert out.citations == [Citation("file-a", "source:file-a", "valve V-1")]

    def test_chat_completions_shape(self) -> None:
        raw = {"choices": [{"message": {"role": "assistant", "content": "  plain answer "}}]}
        assert normalize(raw).text == "plain answer"

    def test_structured_text_config_is_not_mistaken_for_text(self) -> None:
        raw = responses_api(["real text"])
        raw["text"] = {"format": {"type": "text"}}
        assert normalize(raw).text == "real text"

    @pytest.mark.parametrize("raw", [{}, None, [], "oops", {"output": "not-a-list"}, {"output": [{"content": [{"type": "refusal"}]}]}])
    def test_no_text_falls_back_to_placeholder(self, raw) -> None:
        out = normalize(raw)
        assert out.text == NO_ANSWER_TEXT
        assert out.citations == []


class TestNormalizeCitations:
    def test_annotations_collected_even_when_flattened_text_used(self) -> None:
        raw = responses_api(
            ["ignored"],
            annotations=[{"type": "file_citation", "file_id": "file-b", "filename": "bypass.pdf"}],
            output_text="Use the bypass.",
        )
        out = normalize(raw)
        assert out.text == "Use the bypass."
        assert out.citations == [Citation("file-b", "bypass.pdf", "")]

    def test_duplicates_collapse_keeping_first(self) -> None:
        raw = responses_api(
            ["a", "b"],
            annotations=[
                {"type": "file_citation", "file_id": "f1", "index": 1},
                {"type": "file_citation", "file_id": "f2", "index": 2},
                {"type": "file_citation", "file_id": "f1", "filename": "later.pdf"},
            ],
        )
        assert [c.source_id for c in normalize(raw).citations] == ["f1", "f2"]
        assert normalize(raw).citations[0].display_name == "source:f1"

    def test_annotations_without_source_are_ignored(self) -> None:
        raw = responses_api(["t"], annotations=[{"type": "url_citation", "url": "https://example.com"}])
        assert normalize(raw).citations == []


class TestIdempotence:
    def test_normalizing_a_normalized_pair_is_stable(self) -> None:
        first = normalize(
            responses_api(
                ["Procedure X", "Step 2"],
                annotations=[
                    {"type": "file_citation", "file_id": "doc1"},
                    {"type": "file_citation", "file_id": "doc2", "filename": "valves.pdf", "quote": "close V-2"},
                ],
            )
        )
        second = normalize(to_raw_response(first))
        assert second == first

    def test_placeholder_text_is_stable(self) -> None:
        first = normalize({})
        assert normalize(to_raw_response(first)) == NormalizedResponse(NO_ANSWER_TEXT, [])
