"""
Query strategies: one configured way of obtaining an answer.

Variants are {SynchronousStrategy, JobBasedStrategy} x {grounded, ungrounded}.
attempt() runs the strategy exactly once and never raises for failures the
service can produce; it returns an AttemptOutcome instead.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

import httpx

from app.agent.llm import CompletionClient
from app.agent.models import Query
from app.agent.outcomes import AttemptOutcome, FatalFailure, Success, classify_error
from app.agent.poller import Job, JobPoller, JobStatus
from app.core.config import (
    GROUNDING_CONFIGURED,
    JOB_DEADLINE_MS,
    JOB_POLL_INTERVAL_MS,
    MODEL_PRIMARY,
    MODEL_SECONDARY,
    QUERY_STRATEGIES,
    VECTOR_STORE_ID,
)
from app.core.errors import CompletionServiceError, PollTimeout

logger = logging.getLogger(__name__)


class StrategyKind(str, Enum):
    SYNCHRONOUS = "sync"
    JOB_BASED = "job"


class Strategy(ABC):
    kind: StrategyKind

    def __init__(self, model: str, vector_store_id: str | None = None) -> None:
        self.model = model
        self.vector_store_id = vector_store_id or None

    @property
    def grounding_enabled(self) -> bool:
        return self.vector_store_id is not None

    def describe(self) -> str:
        grounding = "grounded" if self.grounding_enabled else "ungrounded"
        return f"{self.kind.value}:{grounding}:{self.model}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.describe()}>"

    async def attempt(self, query: Query, client: CompletionClient) -> AttemptOutcome:
        try:
            return await self._run(query, client)
        except (CompletionServiceError, PollTimeout, httpx.TransportError) as e:
            return classify_error(e)

    @abstractmethod
    async def _run(self, query: Query, client: CompletionClient) -> AttemptOutcome:
        ...


class SynchronousStrategy(Strategy):
    kind = StrategyKind.SYNCHRONOUS

    async def _run(self, query: Query, client: CompletionClient) -> AttemptOutcome:
        raw = await client.create_response(query, self.model, vector_store_id=self.vector_store_id)
        return Success(raw)


class JobBasedStrategy(Strategy):
    kind = StrategyKind.JOB_BASED

    def __init__(self, model: str, vector_store_id: str | None = None, poller: JobPoller | None = None) -> None:
        super().__init__(model, vector_store_id)
        self.poller = poller or JobPoller(JOB_POLL_INTERVAL_MS, JOB_DEADLINE_MS)

    async def _run(self, query: Query, client: CompletionClient) -> AttemptOutcome:
        async def submit() -> Job:
            return Job.from_response(
                await client.submit_job(query, self.model, vector_store_id=self.vector_store_id)
            )

        async def fetch_status(job_id: str) -> Job:
            return Job.from_response(await client.retrieve_response(job_id))

        job = await self.poller.await_job(submit, fetch_status)
        if job.status is not JobStatus.COMPLETED:
            detail = ((job.result or {}).get("error") or {}).get("message") or ""
            reason = f"job {job.id} ended {job.status.value}" + (f": {detail}" if detail else "")
            return FatalFailure(reason, f"job_{job.status.value}")
        return Success(job.result or {})


_KINDS = {
    StrategyKind.SYNCHRONOUS.value: SynchronousStrategy,
    StrategyKind.JOB_BASED.value: JobBasedStrategy,
}


def parse_strategies(
    entries: str,
    *,
    primary_model: str,
    secondary_model: str,
    vector_store_id: str | None,
    poller: JobPoller | None = None,
) -> list[Strategy]:
    """
    Build the ordered strategy list from "kind:grounding:model" entries.
    Grounded entries are skipped when no vector store is configured; duplicates collapse.
    """
    strategies: list[Strategy] = []
    seen: set[str] = set()
    for entry in (e.strip() for e in entries.split(",")):
        if not entry:
            continue
        parts = [p.strip().lower() for p in entry.split(":")]
        if len(parts) != 3 or parts[0] not in _KINDS or parts[1] not in ("grounded", "ungrounded"):
            raise ValueError(f"invalid strategy entry {entry!r}; expected kind:grounding:model")
        kind, grounding, model = parts
        model = {"primary": primary_model, "secondary": secondary_model}.get(model, entry.split(":")[2].strip())
        if grounding == "grounded" and not vector_store_id:
            logger.info("[strategies:parse] skip %s (grounding not configured)", entry)
            continue
        store = vector_store_id if grounding == "grounded" else None
        strategy = JobBasedStrategy(model, store, poller) if kind == "job" else SynchronousStrategy(model, store)
        if strategy.describe() in seen:
            continue
        seen.add(strategy.describe())
        strategies.append(strategy)
    return strategies


def default_strategies() -> list[Strategy]:
    """Strategy list from process configuration."""
    return parse_strategies(
        QUERY_STRATEGIES,
        primary_model=MODEL_PRIMARY,
        secondary_model=MODEL_SECONDARY,
        vector_store_id=VECTOR_STORE_ID if GROUNDING_CONFIGURED else None,
    )
