"""
LangGraph strategy cascade: attempt strategy → (next strategy or finalize) → END.

Strategies are tried once each, in configured order (most capable first),
strictly sequentially. A success short-circuits to normalization and citation
resolution; every failure class advances to the next strategy. Only the
successful attempt feeds the answer; earlier attempts leave nothing behind
except their diagnostic record.
"""

import logging
from typing import Any, Literal, TypedDict

from langgraph.graph import END, StateGraph

from app.agent.llm import CompletionClient
from app.agent.models import Answer, Query
from app.agent.outcomes import AttemptOutcome, Success, UnsupportedFeature, outcome_label
from app.agent.retry import RetryPolicy
from app.agent.strategies import Strategy
from app.core.errors import ExhaustedCascadeError
from app.services.citations import CitationResolver
from app.services.normalizer import normalize

logger = logging.getLogger(__name__)

GROUNDING_NOTICE = "Document search was unavailable; this answer was produced without the procedure documents."
MODEL_NOTICE = "The primary model was unavailable; this answer was produced with {model}."
FALLBACK_NOTICE = "The preferred query mode was unavailable; a fallback mode was used."


class CascadeState(TypedDict):
    query: Query
    position: int  # index of the next strategy to attempt
    outcome: AttemptOutcome | None
    used: int | None  # index of the strategy that succeeded
    grounding_unsupported: bool
    last_failure: Any
    attempts: list  # list of {"strategy", "outcome", "reason"} dicts
    answer: Answer | None


class StrategyCascade:
    """execute(query) -> Answer; raises ExhaustedCascadeError when no strategy succeeds."""

    def __init__(
        self,
        strategies: list[Strategy],
        client: CompletionClient,
        retry_policy: RetryPolicy,
        resolver: CitationResolver,
    ) -> None:
        self.strategies = list(strategies)
        self.client = client
        self.retry_policy = retry_policy
        self.resolver = resolver
        self._graph = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(CascadeState)

        graph.add_node("attempt_strategy", self._attempt_strategy)
        graph.add_node("finalize_answer", self._finalize_answer)

        graph.set_entry_point("attempt_strategy")
        graph.add_conditional_edges(
            "attempt_strategy",
            self._route_after_attempt,
            {"attempt_strategy": "attempt_strategy", "finalize_answer": "finalize_answer", END: END},
        )
        graph.add_edge("finalize_answer", END)

        return graph.compile()

    async def _attempt_strategy(self, state: CascadeState) -> dict:
        """Node 1: run the strategy at `position` once (under the retry policy)."""
        i = state["position"]
        strategy = self.strategies[i]
        attempts = list(state.get("attempts") or [])

        if strategy.grounding_enabled and state.get("grounding_unsupported"):
            logger.info("[graph:attempt_strategy] skip %s (grounding unsupported earlier)", strategy.describe())
            attempts.append({"strategy": strategy.describe(), "outcome": "skipped", "reason": "grounding unsupported"})
            return {"position": i + 1, "outcome": None, "attempts": attempts}

        logger.info("[graph:attempt_strategy] IN  %d/%d %s", i + 1, len(self.strategies), strategy.describe())
        query = state["query"]
        outcome = await self.retry_policy.run(lambda: strategy.attempt(query, self.client))
        label = outcome_label(outcome)
        logger.info("[graph:attempt_strategy] OUT %s -> %s", strategy.describe(), label)

        update: dict[str, Any] = {"position": i + 1, "outcome": outcome}
        if isinstance(outcome, Success):
            attempts.append({"strategy": strategy.describe(), "outcome": label})
            update["used"] = i
        else:
            attempts.append({"strategy": strategy.describe(), "outcome": label, "reason": outcome.reason})
            update["last_failure"] = outcome
            # A grounded strategy rejected for anything but the job mechanism
            # rules out grounding for the rest of this query, on any model.
            if (
                isinstance(outcome, UnsupportedFeature)
                and outcome.feature != "jobs"
                and strategy.grounding_enabled
            ):
                update["grounding_unsupported"] = True
        update["attempts"] = attempts
        return update

    def _route_after_attempt(self, state: CascadeState) -> Literal["attempt_strategy", "finalize_answer", "__end__"]:
        """Success → finalize; strategies left → next one; otherwise stop (exhausted)."""
        if isinstance(state.get("outcome"), Success):
            return "finalize_answer"
        if state["position"] < len(self.strategies):
            return "attempt_strategy"
        return END

    async def _finalize_answer(self, state: CascadeState) -> dict:
        """Node 2: normalize the successful raw response and resolve citation names."""
        used = state["used"]
        strategy = self.strategies[used]
        normalized = normalize(state["outcome"].raw)
        citations = await self.resolver.resolve_all(normalized.citations)
        answer = Answer(
            text=normalized.text,
            citations=citations,
            grounding_used=strategy.grounding_enabled,
            model_used=strategy.model,
            notice=self._notice(used),
            diagnostic={"attempts": state.get("attempts") or []},
        )
        logger.info(
            "[graph:finalize_answer] OUT strategy=%s text_len=%d citations=%d notice=%s",
            strategy.describe(), len(answer.text), len(citations), bool(answer.notice),
        )
        return {"answer": answer}

    def _notice(self, used: int) -> str | None:
        """User-visible notice when a strategy other than the preferred one answered."""
        if used == 0:
            return None
        first, chosen = self.strategies[0], self.strategies[used]
        parts = []
        if first.grounding_enabled and not chosen.grounding_enabled:
            parts.append(GROUNDING_NOTICE)
        if chosen.model != first.model:
            parts.append(MODEL_NOTICE.format(model=chosen.model))
        return " ".join(parts) or FALLBACK_NOTICE

    async def execute(self, query: Query) -> Answer:
        if not self.strategies:
            raise ExhaustedCascadeError(None, [])
        self.resolver.reset()
        initial: CascadeState = {
            "query": query,
            "position": 0,
            "outcome": None,
            "used": None,
            "grounding_unsupported": False,
            "last_failure": None,
            "attempts": [],
            "answer": None,
        }
        final = await self._graph.ainvoke(initial, config={"recursion_limit": len(self.strategies) + 5})
        answer = final.get("answer")
        if answer is None:
            attempts = final.get("attempts") or []
            logger.error("[graph:execute] all %d strategies failed: %s", len(self.strategies), attempts)
            raise ExhaustedCascadeError(final.get("last_failure"), attempts)
        return answer
