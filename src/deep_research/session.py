"""A complete research session: validate, research, report."""

import uuid

from .config import (
    DEFAULT_BREADTH,
    DEFAULT_DEPTH,
    MAX_BREADTH,
    MAX_DEPTH,
    MIN_BREADTH,
    MIN_DEPTH,
    ResearchConfig,
)
from .engine import DeepResearchEngine
from .errors import InvalidResearchRequest
from .learnings import LearningExtractor
from .llm import StructuredModelClient, create_chat_model
from .logging import get_logger, log_duration, preview, research_context
from .planner import QueryPlanner
from .progress import NullProgressSink, ProgressSink, StatusEvent
from .report import ReportSynthesizer, dedupe_sources
from .state import DeepResearchOutcome
from .tools import WebSearchCapability, create_web_search

logger = get_logger("session")


def validate_request(query: str, depth: int, breadth: int) -> None:
    """Reject malformed input before any model call."""
    if not isinstance(query, str) or not query.strip():
        raise InvalidResearchRequest("query is required")
    if not MIN_DEPTH <= depth <= MAX_DEPTH:
        raise InvalidResearchRequest(
            f"depth must be between {MIN_DEPTH} and {MAX_DEPTH}, got {depth}"
        )
    if not MIN_BREADTH <= breadth <= MAX_BREADTH:
        raise InvalidResearchRequest(
            f"breadth must be between {MIN_BREADTH} and {MAX_BREADTH}, got {breadth}"
        )


class DeepResearchSession:
    """Runs the engine, then the report synthesizer, for one request."""

    def __init__(
        self,
        engine: DeepResearchEngine,
        synthesizer: ReportSynthesizer,
        config: ResearchConfig | None = None,
    ):
        self.engine = engine
        self.synthesizer = synthesizer
        self.config = config or engine.config

    @property
    def sink(self) -> ProgressSink:
        return self.engine.sink

    async def run(
        self,
        query: str,
        depth: int = DEFAULT_DEPTH,
        breadth: int = DEFAULT_BREADTH,
    ) -> DeepResearchOutcome:
        validate_request(query, depth, breadth)
        session_id = uuid.uuid4().hex[:12]

        with research_context(session_id=session_id), log_duration(
            logger,
            "research_session",
            query=preview(query),
            depth=depth,
            breadth=breadth,
        ) as result_ctx:
            self.sink.emit(StatusEvent("Beginning deep research"))
            research = await self.engine.deep_research(query, depth, breadth)

            self.sink.emit(StatusEvent("Generating report..."))
            report = await self.synthesizer.generate(query, research)
            self.sink.emit(StatusEvent("Successfully generated report"))

            total_source_count = len(research.sources)
            research.sources = dedupe_sources(
                research.sources,
                max_content_chars=self.config.response_source_chars,
                suffix="...",
            )
            result_ctx["learning_count"] = len(research.learnings)
            result_ctx["source_count"] = total_source_count
            result_ctx["unique_source_count"] = len(research.sources)
            result_ctx["query_count"] = len(research.search_queries)

        return DeepResearchOutcome(
            research=research, report=report, total_source_count=total_source_count
        )


def create_research_session(
    config: ResearchConfig | None = None,
    sink: ProgressSink | None = None,
    client: StructuredModelClient | None = None,
    search: WebSearchCapability | None = None,
) -> DeepResearchSession:
    """Wire a session from configuration.

    Args:
        config: Runtime configuration (defaults to ``ResearchConfig.from_env()``).
        sink: Where progress events go.
        client: Model client for planning, extraction and reports.
        search: Search backend; defaults to the configured one.
    """
    config = config or ResearchConfig.from_env()
    client = client or StructuredModelClient(create_chat_model(config), name="research")
    if search is None:
        search_client = StructuredModelClient(
            create_chat_model(config, config.search_model_name), name="search"
        )
        search = create_web_search(config, search_client)

    engine = DeepResearchEngine(
        planner=QueryPlanner(client),
        search=search,
        extractor=LearningExtractor(client),
        sink=sink or NullProgressSink(),
        config=config,
    )
    synthesizer = ReportSynthesizer(client, source_chars=config.report_source_chars)

    logger.info(
        "session_created",
        model=config.model_name,
        search_backend=config.search_backend,
        max_concurrency=config.max_concurrency,
    )
    return DeepResearchSession(engine, synthesizer, config)
