"""Agent-driven research variant.

Instead of searching every planned query once, each query is handed to a
``SearchEvaluationAgent`` that keeps searching until the model accepts
results. Every accepted result yields one learning, and each learning is
researched one level deeper. Calls return their own ``AlternateResearchState``
and the caller merges it; queries of one node run one after another so later
queries can reject pages an earlier query already accepted.
"""

import math
from collections.abc import Sequence

from .agent import SearchEvaluationAgent
from .config import ResearchConfig
from .errors import InvalidResearchRequest
from .llm import StructuredModelClient
from .logging import get_logger, log_duration, preview, research_context
from .planner import QueryPlanner
from .progress import NullProgressSink, ProgressSink, SourceEvent, StatusEvent
from .prompts import AGENT_FOLLOW_UP_TEMPLATE, SINGLE_LEARNING_PROMPT, researcher_system_prompt
from .schemas import LearningWithFollowUp
from .state import AlternateResearchState, Learning, SearchResult
from .tools import WebSearchCapability

logger = get_logger("agent_engine")


class AgentResearchEngine:
    def __init__(
        self,
        client: StructuredModelClient,
        planner: QueryPlanner,
        agent: SearchEvaluationAgent,
        sink: ProgressSink | None = None,
    ):
        self.client = client
        self.planner = planner
        self.agent = agent
        self.sink = sink or NullProgressSink()

    async def research(self, query: str, depth: int, breadth: int) -> AlternateResearchState:
        if depth < 0 or breadth < 1:
            raise InvalidResearchRequest(
                f"depth must be >= 0 and breadth >= 1, got depth={depth} breadth={breadth}"
            )
        state = await self._research(query, depth, breadth, known_sources=[], completed=[])
        state.query = query
        return state

    async def _research(
        self,
        prompt: str,
        depth: int,
        breadth: int,
        known_sources: Sequence[SearchResult],
        completed: Sequence[str],
    ) -> AlternateResearchState:
        result = AlternateResearchState()
        if depth == 0:
            return result

        with research_context(depth=depth), log_duration(
            logger, "agent_research_node", depth=depth, breadth=breadth
        ):
            planned = await self.planner.plan(prompt, breadth)
            result.queries = [p.query for p in planned]

            for query in result.queries:
                self.sink.emit(StatusEvent(f'Searching and evaluating results for "{query}"'))
                accepted = await self.agent.run(
                    query, [*known_sources, *result.search_results]
                )
                result.search_results.extend(accepted)

                for hit in accepted:
                    self.sink.emit(SourceEvent(title=hit.title, url=hit.url))
                    learning = await self._learn(query, hit)
                    result.learnings.append(learning)
                    result.completed_queries.append(query)

                    done = [*completed, *result.completed_queries]
                    child = await self._research(
                        AGENT_FOLLOW_UP_TEMPLATE.format(
                            query=query,
                            completed_queries=", ".join(done),
                            follow_up_questions=", ".join(learning.follow_up_questions),
                        ),
                        depth - 1,
                        math.ceil(breadth / 2),
                        known_sources=[*known_sources, *result.search_results],
                        completed=done,
                    )
                    result.extend(child)

        return result

    async def _learn(self, query: str, hit: SearchResult) -> Learning:
        generated = await self.client.generate_object(
            LearningWithFollowUp,
            SINGLE_LEARNING_PROMPT.format(
                query=query, search_result=hit.model_dump_json(by_alias=True)
            ),
        )
        logger.debug("learning_generated", query=preview(query), url=hit.url)
        return Learning(
            learning=generated.learning,
            follow_up_questions=generated.follow_up_questions,
        )

    async def report(self, state: AlternateResearchState) -> str:
        """Write a markdown report straight from the accumulated state."""
        with log_duration(logger, "agent_report", learning_count=len(state.learnings)):
            return await self.client.generate_text(
                "Generate a report based on the following research data:\n\n"
                + state.model_dump_json(by_alias=True, indent=2),
                system=researcher_system_prompt("Use Markdown formatting."),
            )


def create_agent_research_engine(
    config: ResearchConfig,
    client: StructuredModelClient,
    search: WebSearchCapability,
    sink: ProgressSink | None = None,
) -> AgentResearchEngine:
    agent = SearchEvaluationAgent(client, search, max_steps=config.agent_max_steps)
    return AgentResearchEngine(client, QueryPlanner(client), agent, sink=sink)
