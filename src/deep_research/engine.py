"""Recursive deep research engine.

A research node plans up to ``breadth`` sub-queries and runs one branch per
query concurrently. Each branch searches, extracts learnings and follow-up
questions, then recurses with ``depth - 1`` and ``ceil(breadth / 2)`` on a
prompt built from the query's research goal and the follow-ups. Children start
from an empty accumulator; a branch returns its own findings followed by its
child's, and the node appends branch results in query order once every
branch has finished.

Example with depth=2, breadth=3::

    "Electric cars"                         depth 2, breadth 3
    ├── "Tesla Model 3 specifications"      -> recurse depth 1, breadth 2
    │   ├── "Model 3 range capacity"
    │   └── "Model 3 battery life"
    ├── "EV charging infrastructure"        -> recurse depth 1, breadth 2
    └── "EV battery technology"             -> recurse depth 1, breadth 2
"""

import asyncio
import math
from collections.abc import Sequence
from typing import Protocol

from .config import ResearchConfig
from .errors import InvalidResearchRequest
from .logging import get_logger, log_duration, preview, research_context
from .progress import NullProgressSink, ProgressSink, SourceEvent, StatusEvent
from .prompts import FOLLOW_UP_QUERY_TEMPLATE
from .state import ExtractedLearnings, Research, ResearchQuery, SearchResult
from .tools import WebSearchCapability

logger = get_logger("engine")


class Planner(Protocol):
    async def plan(
        self, prompt: str, breadth: int, prior_learnings: Sequence[str] | None = None
    ) -> list[ResearchQuery]: ...


class Extractor(Protocol):
    async def extract(
        self,
        query: str,
        results: Sequence[SearchResult],
        max_learnings: int,
        max_follow_ups: int,
    ) -> ExtractedLearnings: ...


def next_breadth(breadth: int) -> int:
    """Breadth of a child node: 5 -> 3 -> 2 -> 1 -> 1, never 0."""
    return math.ceil(breadth / 2)


def build_follow_up_prompt(research_goal: str, follow_up_questions: Sequence[str]) -> str:
    return FOLLOW_UP_QUERY_TEMPLATE.format(
        research_goal=research_goal,
        follow_up_questions="\n".join(follow_up_questions),
    )


class DeepResearchEngine:
    """Orchestrates recursive research over a planner, a search backend and an extractor.

    ``max_concurrency`` bounds model and search calls in flight across the
    whole tree. The limit is held only around those calls, never while a
    branch waits on its children, so deep trees cannot starve themselves.
    """

    def __init__(
        self,
        planner: Planner,
        search: WebSearchCapability,
        extractor: Extractor,
        sink: ProgressSink | None = None,
        config: ResearchConfig | None = None,
    ):
        self.planner = planner
        self.search = search
        self.extractor = extractor
        self.sink = sink or NullProgressSink()
        self.config = config or ResearchConfig()
        self._limiter = asyncio.Semaphore(self.config.max_concurrency)

    async def deep_research(
        self,
        prompt: str,
        depth: int,
        breadth: int,
        prior: Research | None = None,
    ) -> Research:
        """Research ``prompt`` recursively and return the accumulator.

        Args:
            prompt: The research prompt for this node.
            depth: Levels remaining; 0 returns ``prior`` untouched without any model call.
            breadth: Maximum number of sub-queries planned at this node.
            prior: Accumulator to append to. Its learnings sharpen the plan.

        Returns:
            The accumulator with every branch's findings appended in query order.
        """
        accumulated = prior if prior is not None else Research()
        if depth == 0:
            return accumulated
        if depth < 0:
            raise InvalidResearchRequest(f"depth must be >= 0, got {depth}")
        if breadth < 1:
            raise InvalidResearchRequest(f"breadth must be >= 1, got {breadth}")

        with research_context(depth=depth), log_duration(
            logger, "research_node", depth=depth, breadth=breadth
        ) as result_ctx:
            self.sink.emit(
                StatusEvent(f'Generating search queries for "{preview(prompt, 120)}"')
            )
            async with self._limiter:
                queries = await self.planner.plan(
                    prompt, breadth, accumulated.learnings or None
                )

            branch_results = await self._run_branches(queries, depth, breadth)
            for branch in branch_results:
                accumulated.extend(branch)

            result_ctx["query_count"] = len(queries)
            result_ctx["learning_count"] = len(accumulated.learnings)
            result_ctx["source_count"] = len(accumulated.sources)

        return accumulated

    async def _run_branches(
        self, queries: Sequence[ResearchQuery], depth: int, breadth: int
    ) -> list[Research]:
        # A failing branch cancels its siblings unless failures are isolated
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(self._guarded_branch(planned, depth, breadth))
                    for planned in queries
                ]
        except ExceptionGroup as eg:
            raise eg.exceptions[0]
        return [task.result() for task in tasks]

    async def _guarded_branch(
        self, planned: ResearchQuery, depth: int, breadth: int
    ) -> Research:
        if not self.config.isolate_branch_failures:
            return await self._branch(planned, depth, breadth)
        try:
            return await self._branch(planned, depth, breadth)
        except Exception as e:
            logger.warning(
                "research_branch_dropped",
                query=planned.query,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.sink.emit(StatusEvent(f'Research failed for "{planned.query}"'))
            return Research()

    async def _branch(self, planned: ResearchQuery, depth: int, breadth: int) -> Research:
        query = planned.query
        with research_context(query=preview(query, 60)), log_duration(
            logger, "research_branch", depth=depth, breadth=breadth
        ):
            self.sink.emit(StatusEvent(f'Searching the web for "{query}"'))
            async with self._limiter:
                results = await self.search.search(query)
            await self._emit_sources(results)

            self.sink.emit(StatusEvent(f'Analyzing search results for "{query}"'))
            async with self._limiter:
                extracted = await self.extractor.extract(
                    query, results, self.config.max_learnings, breadth
                )

            follow_ups = extracted.follow_up_questions
            if depth > 1:
                self.sink.emit(
                    StatusEvent(f'Diving deeper to understand "{", ".join(follow_ups[:3])}"')
                )
            sub_research = await self.deep_research(
                build_follow_up_prompt(planned.research_goal, follow_ups),
                depth - 1,
                next_breadth(breadth),
            )

            # Sources found deeper in the tree still reach the progress stream
            for source in sub_research.sources:
                self.sink.emit(SourceEvent(title=source.title, url=source.url))

        return Research(
            learnings=[*extracted.learnings, *sub_research.learnings],
            sources=[*results, *sub_research.sources],
            questions_explored=[*follow_ups, *sub_research.questions_explored],
            search_queries=[query, *sub_research.search_queries],
        )

    async def _emit_sources(self, results: Sequence[SearchResult]) -> None:
        delay = self.config.source_emit_delay
        for i, source in enumerate(results):
            if i and delay:
                await asyncio.sleep(delay)
            self.sink.emit(SourceEvent(title=source.title, url=source.url))
