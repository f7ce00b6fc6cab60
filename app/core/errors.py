"""
Application errors for clean API error handling.

Use ServiceUnavailableError when a dependency (API key, query strategies) is
misconfigured so the API can return 503 with a user-facing message. The
completion-service errors below are classified into attempt outcomes by
app.agent.outcomes; only ExhaustedCascadeError reaches the HTTP layer.
"""

from typing import Any


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. the completion API key) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class CompletionServiceError(Exception):
    """Non-2xx answer from the completion service, with its structured error fields."""

    def __init__(
        self,
        status: int,
        message: str,
        code: str | None = None,
        param: str | None = None,
        data: Any = None,
    ) -> None:
        self.status = status
        self.message = message
        self.code = code
        self.param = param
        self.data = data
        super().__init__(f"{status} {message}")


class PollTimeout(Exception):
    """Raised by the job poller when the deadline elapses before a terminal status."""

    def __init__(self, job_id: str, elapsed_ms: float) -> None:
        self.job_id = job_id
        self.elapsed_ms = elapsed_ms
        super().__init__(f"job {job_id} still running after {elapsed_ms:.0f} ms")


class ExhaustedCascadeError(Exception):
    """No query strategy produced an answer. Carries the last failure and the attempt log."""

    def __init__(self, last_failure: Any, attempts: list[dict[str, Any]]) -> None:
        self.last_failure = last_failure
        self.attempts = attempts
        reason = getattr(last_failure, "reason", None) or "no strategy configured"
        super().__init__(f"all query strategies failed: {reason}")
