"""
Tests for the concrete strategies and error classification against a mocked
completion service (httpx.MockTransport), so no network or API key is needed.
"""

import asyncio
import json

import httpx
import pytest

from app.agent.llm import CompletionClient
from app.agent.models import Query, Turn
from app.agent.outcomes import FatalFailure, Success, TransientFailure, UnsupportedFeature, classify_error
from app.agent.poller import JobPoller
from app.agent.strategies import JobBasedStrategy, SynchronousStrategy, parse_strategies
from app.core.errors import CompletionServiceError, PollTimeout

QUERY = Query(
    text="How do I open the bypass?",
    conversation_history=(Turn("user", "Hi"), Turn("assistant", "Hello, how can I help?")),
)


def error_body(status: int, message: str, code=None, param=None) -> httpx.Response:
    return httpx.Response(status, json={"error": {"message": message, "type": "invalid_request_error", "code": code, "param": param}})


def attempt(strategy, handler):
    async def run():
        async with httpx.AsyncClient(base_url="https://api.test/v1", transport=httpx.MockTransport(handler)) as http:
            return await strategy.attempt(QUERY, CompletionClient(http))

    return asyncio.run(run())


class FakeClock:
    def __init__(self) -> None:
        self.now_ms = 0.0

    def __call__(self) -> float:
        return self.now_ms / 1000

    async def sleep(self, seconds: float) -> None:
        self.now_ms += seconds * 1000


class TestSynchronousStrategy:
    def test_grounded_request_carries_file_search_and_history(self) -> None:
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "resp_1", "status": "completed", "output": []})

        outcome = attempt(SynchronousStrategy("gpt-4o-mini", "vs_1"), handler)
        assert isinstance(outcome, Success)
        payload = sent[0]
        assert payload["model"] == "gpt-4o-mini"
        assert payload["tools"] == [{"type": "file_search", "vector_store_ids": ["vs_1"]}]
        assert payload["input"][-1] == {"role": "user", "content": "How do I open the bypass?"}
        assert [t["role"] for t in payload["input"]] == ["user", "assistant", "user"]
        assert payload["instructions"]

    def test_ungrounded_request_has_no_tools(self) -> None:
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(json.loads(request.content))
            return httpx.Response(200, json={"output_text": "ok"})

        attempt(SynchronousStrategy("gpt-4o"), handler)
        assert "tools" not in sent[0]

    @pytest.mark.parametrize(
        "response, expected",
        [
            (error_body(400, "Unknown parameter: 'tools'.", "unknown_parameter", "tools"), UnsupportedFeature),
            (error_body(400, "Invalid value: 'file_search'.", "invalid_value", "tools[0].type"), UnsupportedFeature),
            (error_body(404, "The model `gpt-x` does not exist", "model_not_found", "model"), UnsupportedFeature),
            (error_body(429, "Rate limit reached", "rate_limit_exceeded"), TransientFailure),
            (error_body(429, "You exceeded your current quota", "insufficient_quota"), FatalFailure),
            (error_body(503, "The server is overloaded"), TransientFailure),
            (error_body(401, "Incorrect API key provided", "invalid_api_key"), FatalFailure),
            (httpx.Response(502, text="<html>bad gateway</html>"), TransientFailure),
        ],
    )
    def test_service_errors_become_outcomes(self, response, expected) -> None:
        outcome = attempt(SynchronousStrategy("gpt-4o-mini", "vs_1"), lambda request: response)
        assert isinstance(outcome, expected)

    def test_connection_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        outcome = attempt(SynchronousStrategy("gpt-4o-mini"), handler)
        assert outcome == TransientFailure(outcome.reason, "unavailable")


class TestJobBasedStrategy:
    def make(self, clock: FakeClock, deadline_ms: int = 60_000) -> JobBasedStrategy:
        poller = JobPoller(700, deadline_ms, sleep=clock.sleep, clock=clock)
        return JobBasedStrategy("gpt-4o-mini", "vs_1", poller)

    def test_submits_conversation_then_polls_to_completion(self) -> None:
        clock = FakeClock()
        calls = []
        polls = iter(["in_progress", "in_progress", "completed"])

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, request.url.path))
            if request.url.path.endswith("/conversations"):
                items = json.loads(request.content)["items"]
                assert [i["role"] for i in items] == ["user", "assistant"]
                return httpx.Response(200, json={"id": "conv_1", "object": "conversation"})
            if request.method == "POST":
                body = json.loads(request.content)
                assert body["background"] is True and body["conversation"] == "conv_1"
                assert body["input"] == [{"role": "user", "content": "How do I open the bypass?"}]
                return httpx.Response(200, json={"id": "resp_1", "status": "queued"})
            status = next(polls)
            data = {"id": "resp_1", "status": status}
            if status == "completed":
                data["output_text"] = "Open V-3 first."
            return httpx.Response(200, json=data)

        outcome = attempt(self.make(clock), handler)
        assert isinstance(outcome, Success)
        assert outcome.raw["output_text"] == "Open V-3 first."
        assert calls[:2] == [("POST", "/v1/conversations"), ("POST", "/v1/responses")]
        assert calls[2:] == [("GET", "/v1/responses/resp_1")] * 3

    @pytest.mark.parametrize("status", ["failed", "cancelled", "expired", "incomplete"])
    def test_non_completed_terminal_state_is_fatal(self, status) -> None:
        clock = FakeClock()

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/conversations"):
                return httpx.Response(200, json={"id": "conv_1"})
            if request.method == "POST":
                return httpx.Response(200, json={"id": "resp_1", "status": "queued"})
            return httpx.Response(200, json={"id": "resp_1", "status": status, "error": {"message": "boom"}})

        outcome = attempt(self.make(clock), handler)
        assert isinstance(outcome, FatalFailure)
        assert outcome.code.startswith("job_")
        assert "boom" in outcome.reason

    def test_deadline_becomes_transient_timeout(self) -> None:
        clock = FakeClock()

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/conversations"):
                return httpx.Response(200, json={"id": "conv_1"})
            return httpx.Response(200, json={"id": "resp_1", "status": "in_progress"})

        outcome = attempt(self.make(clock, deadline_ms=2_000), handler)
        assert outcome == TransientFailure(outcome.reason, "timeout")
        assert 2_000 <= clock.now_ms <= 2_700

    def test_background_not_supported_is_unsupported_jobs(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/conversations"):
                return httpx.Response(200, json={"id": "conv_1"})
            return error_body(400, "Unknown parameter: 'background'.", "unknown_parameter", "background")

        outcome = attempt(self.make(FakeClock()), handler)
        assert outcome == UnsupportedFeature(outcome.reason, "jobs")


class TestClassifyError:
    def test_message_heuristic_is_last_resort(self) -> None:
        err = CompletionServiceError(400, "Unknown parameter: 'tool_resources'.")
        assert classify_error(err) == UnsupportedFeature(str(err), "grounding")

    def test_model_not_found_message(self) -> None:
        err = CompletionServiceError(404, "Model not found: gpt-9")
        assert classify_error(err) == UnsupportedFeature(str(err), "model")

    def test_unknown_4xx_is_fatal(self) -> None:
        err = CompletionServiceError(400, "Something else went wrong", code="bad_thing")
        assert classify_error(err) == FatalFailure(str(err), "bad_thing")

    def test_poll_timeout_is_transient(self) -> None:
        assert classify_error(PollTimeout("resp_1", 60_000)).code == "timeout"

    def test_programming_errors_are_reraised(self) -> None:
        with pytest.raises(KeyError):
            classify_error(KeyError("output"))


class TestParseStrategies:
    def test_maps_models_and_keeps_order(self) -> None:
        strategies = parse_strategies(
            "job:grounded:primary, sync:grounded:primary, sync:ungrounded:secondary",
            primary_model="gpt-4o-mini",
            secondary_model="gpt-4o",
            vector_store_id="vs_1",
        )
        assert [s.describe() for s in strategies] == [
            "job:grounded:gpt-4o-mini",
            "sync:grounded:gpt-4o-mini",
            "sync:ungrounded:gpt-4o",
        ]
        assert isinstance(strategies[0], JobBasedStrategy)

    def test_grounded_entries_dropped_without_vector_store(self) -> None:
        strategies = parse_strategies(
            "job:grounded:primary,sync:ungrounded:primary,sync:ungrounded:Custom-Model",
            primary_model="gpt-4o-mini",
            secondary_model="gpt-4o",
            vector_store_id=None,
        )
        assert [s.describe() for s in strategies] == ["sync:ungrounded:gpt-4o-mini", "sync:ungrounded:Custom-Model"]

    def test_duplicates_collapse(self) -> None:
        strategies = parse_strategies(
            "sync:ungrounded:primary,sync:ungrounded:gpt-4o-mini",
            primary_model="gpt-4o-mini",
            secondary_model="gpt-4o",
            vector_store_id=None,
        )
        assert len(strategies) == 1

    def test_invalid_entry_raises(self) -> None:
        with pytest.raises(ValueError):
            parse_strategies("stream:grounded:primary", primary_model="a", secondary_model="b", vector_store_id="vs")
