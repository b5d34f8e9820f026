"""Runtime configuration for the deep research engine."""

import os
from dataclasses import dataclass
from typing import Literal

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

SearchBackend = Literal["model", "duckduckgo"]

# Request bounds enforced at the API and session boundary
MIN_DEPTH = 1
MAX_DEPTH = 3
MIN_BREADTH = 1
MAX_BREADTH = 5
DEFAULT_DEPTH = 1
DEFAULT_BREADTH = 2


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ResearchConfig:
    """Tunable constants for research runs.

    Attributes:
        model_name: Chat model used for planning, extraction and reports.
        search_model_name: Chat model used by the model-backed web search.
        temperature: Sampling temperature for all model calls.
        search_backend: "model" asks the model for results, "duckduckgo" searches for real.
        max_search_results: Cap on results returned by a single search.
        max_learnings: Cap on learnings extracted per search batch.
        source_emit_delay: Seconds between successive source events in one branch.
        max_concurrency: Model calls allowed in flight across the whole tree.
        agent_max_steps: Step budget of the search/evaluate agent loop.
        isolate_branch_failures: Keep siblings running when one branch fails.
        report_source_chars: Source content kept per source in the report prompt.
        response_source_chars: Source content kept per source in the returned research.
    """

    model_name: str = "gpt-4o-mini"
    search_model_name: str = "gpt-4o-mini"
    temperature: float = 0.7
    search_backend: SearchBackend = "model"
    max_search_results: int = 3
    max_learnings: int = 3
    source_emit_delay: float = 0.5
    max_concurrency: int = 4
    agent_max_steps: int = 10
    isolate_branch_failures: bool = False
    report_source_chars: int = 350
    response_source_chars: int = 50

    @classmethod
    def from_env(cls) -> "ResearchConfig":
        """Build a config from environment variables (and .env)."""
        model_name = os.getenv("OPENAI_MODEL", cls.model_name)
        backend = os.getenv("RESEARCH_SEARCH_BACKEND", cls.search_backend).lower()
        if backend not in ("model", "duckduckgo"):
            raise ConfigurationError(
                f"RESEARCH_SEARCH_BACKEND must be 'model' or 'duckduckgo', got {backend!r}"
            )

        return cls(
            model_name=model_name,
            search_model_name=os.getenv("OPENAI_SEARCH_MODEL", model_name),
            temperature=_env_float("MODEL_TEMPERATURE", cls.temperature),
            search_backend=backend,
            max_search_results=_env_int(
                "RESEARCH_MAX_SEARCH_RESULTS", cls.max_search_results, minimum=1
            ),
            max_learnings=_env_int("RESEARCH_MAX_LEARNINGS", cls.max_learnings, minimum=1),
            source_emit_delay=_env_float(
                "RESEARCH_SOURCE_EMIT_DELAY", cls.source_emit_delay
            ),
            max_concurrency=_env_int(
                "RESEARCH_MAX_CONCURRENCY", cls.max_concurrency, minimum=1
            ),
            agent_max_steps=_env_int(
                "RESEARCH_AGENT_MAX_STEPS", cls.agent_max_steps, minimum=1
            ),
            isolate_branch_failures=_env_bool(
                "RESEARCH_ISOLATE_BRANCH_FAILURES", cls.isolate_branch_failures
            ),
            report_source_chars=_env_int(
                "RESEARCH_REPORT_SOURCE_CHARS", cls.report_source_chars, minimum=1
            ),
            response_source_chars=_env_int(
                "RESEARCH_RESPONSE_SOURCE_CHARS", cls.response_source_chars, minimum=1
            ),
        )
