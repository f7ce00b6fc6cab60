"""
Retry policy: bounded exponential backoff for transient failures only.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_exponential

from app.agent.outcomes import AttemptOutcome, TransientFailure, outcome_label

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _is_transient(outcome: AttemptOutcome) -> bool:
    return isinstance(outcome, TransientFailure)


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome.result()
    logger.info(
        "[retry:run] attempt=%d transient code=%s; retrying in %d ms",
        retry_state.attempt_number, outcome.code, round(retry_state.next_action.sleep * 1000),
    )


def _give_up(retry_state: RetryCallState) -> AttemptOutcome:
    outcome = retry_state.outcome.result()
    logger.warning("[retry:run] gave up after %d attempts: %s", retry_state.attempt_number, outcome.reason)
    return outcome


class RetryPolicy:
    """
    Run one attempt up to max_attempts times while it keeps failing transiently.

    The delay after failed attempt i (0-indexed) is base_delay_ms * 2**i and is
    only slept when another attempt follows. Any non-transient outcome is
    returned as soon as it happens; after the last attempt the last transient
    failure is returned to the caller.
    """

    def __init__(self, max_attempts: int, base_delay_ms: int, sleep: Sleep = asyncio.sleep) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self._sleep = sleep

    def delay_ms(self, attempt_index: int) -> int:
        return self.base_delay_ms * 2 ** attempt_index

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay_ms / 1000, exp_base=2),
            retry=retry_if_result(_is_transient),
            before_sleep=_log_retry,
            retry_error_callback=_give_up,
        )

    async def run(self, attempt_fn: Callable[[], Awaitable[AttemptOutcome]]) -> AttemptOutcome:
        outcome = await self._retrying()(attempt_fn)
        if not _is_transient(outcome):
            logger.debug("[retry:run] OUT %s", outcome_label(outcome))
        return outcome
