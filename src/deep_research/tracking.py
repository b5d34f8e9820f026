"""MLflow tracking integration for deep research runs."""

import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import mlflow
import mlflow.langchain

from .logging import get_logger
from .state import DeepResearchOutcome

logger = get_logger("tracking")

# Track whether tracing has been enabled
_tracing_enabled = False

# MLflow rejects longer param values
PARAM_LIMIT = 250


@dataclass
class ResearchRunRecord:
    """Counts and artifacts of one research run, filled in while it runs."""

    query: str
    depth: int
    breadth: int
    report_title: str = ""
    report: str = ""
    learning_count: int = 0
    source_count: int = 0
    unique_source_count: int = 0
    query_count: int = 0
    question_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def report_length(self) -> int:
        return len(self.report)


def record_outcome(record: ResearchRunRecord, outcome: DeepResearchOutcome) -> None:
    """Copy the counts and the report of a finished session into ``record``."""
    research = outcome.research
    record.report_title = outcome.report.title
    record.report = outcome.report.content
    record.learning_count = len(research.learnings)
    # Session outcomes carry sources already deduped by url
    record.source_count = max(outcome.total_source_count, len(research.sources))
    record.unique_source_count = len({source.url for source in research.sources})
    record.query_count = len(research.search_queries)
    record.question_count = len(research.questions_explored)


def configure_tracking(
    experiment_name: str = "deep-research",
    tracking_uri: str | None = None,
    enable_tracing: bool = True,
) -> None:
    """Configure MLflow tracking and tracing.

    Args:
        experiment_name: Name of the MLflow experiment.
        tracking_uri: MLflow tracking server URI. Defaults to MLFLOW_TRACKING_URI
                     env var or SQLite database.
        enable_tracing: Whether to enable LangChain tracing for model calls.
    """
    global _tracing_enabled

    uri = tracking_uri or os.getenv("MLFLOW_TRACKING_URI", "sqlite:///mlflow.db")
    mlflow.set_tracking_uri(uri)
    mlflow.set_experiment(experiment_name)

    if enable_tracing and not _tracing_enabled:
        mlflow.langchain.autolog(log_traces=True, silent=True)
        _tracing_enabled = True
        logger.info("tracing_enabled", backend="langchain")

    logger.info(
        "tracking_configured",
        experiment=experiment_name,
        tracking_uri=uri,
        tracing_enabled=enable_tracing,
    )


@contextmanager
def track_research_run(
    query: str,
    depth: int,
    breadth: int,
    run_name: str | None = None,
    tags: dict[str, str] | None = None,
):
    """Track one research run in MLflow.

    Yields a ``ResearchRunRecord`` for the caller to fill; its counts, the
    report and any numeric or string metadata are logged when the block
    exits. A failing block marks the run failed and re-raises.
    """
    record = ResearchRunRecord(query=query, depth=depth, breadth=breadth)

    with mlflow.start_run(run_name=run_name) as run:
        logger.info("tracking_run_started", run_id=run.info.run_id)

        mlflow.log_params(
            {
                "query": query[:PARAM_LIMIT],
                "query_length": len(query),
                "depth": depth,
                "breadth": breadth,
            }
        )
        if tags:
            mlflow.set_tags(tags)

        try:
            yield record
        except Exception as e:
            mlflow.log_param("error", str(e)[:PARAM_LIMIT])
            mlflow.set_tag("status", "failed")
            logger.error("tracking_run_failed", run_id=run.info.run_id, error=str(e))
            raise

        mlflow.log_metrics(
            {
                "learning_count": record.learning_count,
                "source_count": record.source_count,
                "unique_source_count": record.unique_source_count,
                "query_count": record.query_count,
                "question_count": record.question_count,
                "report_length": record.report_length,
            }
        )

        if record.report:
            mlflow.log_text(record.report, "report.md")
            mlflow.log_text(record.query, "query.txt")
        if record.report_title:
            mlflow.log_param("report_title", record.report_title[:PARAM_LIMIT])

        for key, value in record.metadata.items():
            if isinstance(value, (int, float)):
                mlflow.log_metric(key, value)
            elif isinstance(value, str):
                mlflow.log_param(key, value[:PARAM_LIMIT])

        mlflow.set_tag("status", "completed")
        logger.info(
            "tracking_run_completed",
            run_id=run.info.run_id,
            learning_count=record.learning_count,
        )


def disable_tracing() -> None:
    """Disable MLflow LangChain tracing."""
    global _tracing_enabled

    if _tracing_enabled:
        mlflow.langchain.autolog(disable=True)
        _tracing_enabled = False
        logger.info("tracing_disabled")


def is_tracing_enabled() -> bool:
    return _tracing_enabled
