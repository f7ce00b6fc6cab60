"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Values are read once at import and never mutated afterwards, so
concurrent requests only ever see the same read-only settings.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


# OpenAI (completion service + document index)
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL: str = (
    os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/")
    or "https://api.openai.com/v1"
)

# Vector store holding the procedure PDFs. Empty means grounding is not configured.
VECTOR_STORE_ID: str = os.getenv("VECTOR_STORE_ID", "").strip()
GROUNDING_CONFIGURED: bool = bool(VECTOR_STORE_ID)

# Models: primary is tried first, secondary is the fallback model
MODEL_PRIMARY: str = os.getenv("MODEL_PRIMARY", "gpt-4o-mini").strip() or "gpt-4o-mini"
MODEL_SECONDARY: str = os.getenv("MODEL_SECONDARY", "gpt-4o").strip() or "gpt-4o"
LLM_TEMPERATURE: float = _env_float("LLM_TEMPERATURE", 0.2)

# API timeouts (seconds)
LLM_API_TIMEOUT: float = _env_float("LLM_API_TIMEOUT", 60.0)

# Retry policy for transient failures (rate limits, service unavailable)
RETRY_MAX_ATTEMPTS: int = _env_int("RETRY_MAX_ATTEMPTS", 3)
RETRY_BASE_DELAY_MS: int = _env_int("RETRY_BASE_DELAY_MS", 600)

# Job-based strategies: fixed-interval polling under a deadline
JOB_POLL_INTERVAL_MS: int = _env_int("JOB_POLL_INTERVAL_MS", 700)
JOB_DEADLINE_MS: int = _env_int("JOB_DEADLINE_MS", 60_000)

# Ordered query strategies, most capable first. Each entry is kind:grounding:model
# where kind is sync|job, grounding is grounded|ungrounded, model is primary|secondary
# (or a literal model id). Grounded entries are dropped when no vector store is set.
QUERY_STRATEGIES: str = (
    os.getenv(
        "QUERY_STRATEGIES",
        "job:grounded:primary,sync:grounded:primary,sync:ungrounded:primary,sync:ungrounded:secondary",
    ).strip()
)

# When set, error responses and answers carry internal diagnostics
DEBUG: bool = os.getenv("DEBUG", "").strip().lower() not in ("", "0", "false", "no")

SYSTEM_PROMPT: str = (
    "You are Operabot SCC. Answer using the attached procedure documents (PDFs) whenever you can.\n"
    "- If the answer is in the documents, cite the relevant files (name only).\n"
    "- If the documents contradict each other, say so and suggest how to resolve it.\n"
    "- If it is not in the documents, answer with your best judgement and add "
    '"(judgement / not found in the procedures)".\n'
    "- Keep answers short and practical."
)

# Shared note store
NOTES_MAX_ITEMS: int = 200
NOTE_MAX_CHARS: int = 500

# Local folder synced into the vector store by scripts/ingest_documents.py
DOCUMENTS_DIR: str = os.getenv("DOCUMENTS_DIR", "documents").strip() or "documents"
