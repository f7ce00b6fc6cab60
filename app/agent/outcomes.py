"""
Attempt outcomes and error classification.

Every strategy attempt ends in exactly one of Success, TransientFailure,
UnsupportedFeature or FatalFailure. classify_error turns what the completion
service (or the network) raised into one of the failure variants.

Classification order: HTTP status and the structured ``error.code`` /
``error.param`` fields first. Matching on the human-readable message is a
last-resort heuristic only, since upstream wording can change at any time.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Union

import httpx

from app.core.errors import CompletionServiceError, PollTimeout

logger = logging.getLogger(__name__)

# error.code values the service uses when a request parameter is not accepted
UNSUPPORTED_CODES = frozenset({"unknown_parameter", "invalid_value", "unsupported_parameter", "unsupported_value"})
TRANSIENT_STATUSES = frozenset({500, 502, 503, 504})
TRANSIENT_CODES = frozenset({"server_error", "service_unavailable", "rate_limit_exceeded"})

# error.param -> capability it belongs to
_PARAM_FEATURES = {
    "tools": "grounding",
    "tool_resources": "grounding",
    "file_search": "grounding",
    "vector_store_ids": "grounding",
    "background": "jobs",
    "conversation": "jobs",
    "model": "model",
}

_UNSUPPORTED_PATTERNS = (
    (re.compile(r"unknown parameter: '?(tool_resources|tools)", re.I), "grounding"),
    (re.compile(r"invalid value: '?file_search", re.I), "grounding"),
    (re.compile(r"model .*(not found|does not exist)|model_not_found", re.I), "model"),
    (re.compile(r"not supported|unsupported", re.I), None),
)
_RATE_LIMIT_PATTERN = re.compile(r"rate limit", re.I)


@dataclass(frozen=True)
class Success:
    raw: dict[str, Any]


@dataclass(frozen=True)
class TransientFailure:
    reason: str
    code: str = "unavailable"


@dataclass(frozen=True)
class UnsupportedFeature:
    reason: str
    feature: str = "unknown"


@dataclass(frozen=True)
class FatalFailure:
    reason: str
    code: str = "fatal"


Failure = Union[TransientFailure, UnsupportedFeature, FatalFailure]
AttemptOutcome = Union[Success, TransientFailure, UnsupportedFeature, FatalFailure]


def outcome_label(outcome: AttemptOutcome) -> str:
    """Short name for logs and diagnostics."""
    return {
        Success: "success",
        TransientFailure: "transient",
        UnsupportedFeature: "unsupported",
        FatalFailure: "fatal",
    }[type(outcome)]


def _feature_for(err: CompletionServiceError) -> str:
    param = (err.param or "").lower()
    for key, feature in _PARAM_FEATURES.items():
        if key in param:
            return feature
    message = err.message.lower()
    if "file_search" in message or "tool_resources" in message or "vector_store" in message:
        return "grounding"
    if "background" in message or "conversation" in message:
        return "jobs"
    return "unknown"


def _classify_service_error(err: CompletionServiceError) -> Failure:
    code = (err.code or "").lower()
    reason = str(err)

    if code in UNSUPPORTED_CODES:
        return UnsupportedFeature(reason, _feature_for(err))
    if code == "model_not_found":
        return UnsupportedFeature(reason, "model")
    if code == "insufficient_quota":
        return FatalFailure(reason, "insufficient_quota")
    if err.status == 429 or code == "rate_limit_exceeded":
        return TransientFailure(reason, "rate_limited")
    if err.status in TRANSIENT_STATUSES or code in TRANSIENT_CODES:
        return TransientFailure(reason, "unavailable")
    if err.status in (401, 403):
        return FatalFailure(reason, "unauthorized")

    # Last resort: message wording.
    for pattern, feature in _UNSUPPORTED_PATTERNS:
        if pattern.search(err.message):
            logger.info("[outcomes:classify] matched message heuristic %r", pattern.pattern)
            return UnsupportedFeature(reason, feature or _feature_for(err))
    if _RATE_LIMIT_PATTERN.search(err.message):
        return TransientFailure(reason, "rate_limited")
    return FatalFailure(reason, code or f"http_{err.status}")


def classify_error(exc: Exception) -> Failure:
    """
    Map an exception raised while executing a strategy to a failure outcome.
    Re-raises exceptions that are not about the remote call (programming errors).
    """
    if isinstance(exc, CompletionServiceError):
        return _classify_service_error(exc)
    if isinstance(exc, PollTimeout):
        return TransientFailure(str(exc), "timeout")
    if isinstance(exc, httpx.TransportError):
        return TransientFailure(f"{type(exc).__name__}: {exc}", "unavailable")
    raise exc
