"""Query planning: turn a research prompt into bounded, unique sub-queries."""

from collections.abc import Sequence

from .llm import StructuredModelClient
from .logging import get_logger, log_duration
from .prompts import PRIOR_LEARNINGS_SUFFIX, QUERY_PLANNING_PROMPT, researcher_system_prompt
from .schemas import SerpQueryPlan
from .state import ResearchQuery

logger = get_logger("planner")


def unique_queries(queries: Sequence[ResearchQuery]) -> list[ResearchQuery]:
    """Drop queries whose text repeats an earlier one, keeping order."""
    seen: set[str] = set()
    unique = []
    for planned in queries:
        key = planned.query.strip().lower()
        if key and key not in seen:
            seen.add(key)
            unique.append(planned)
    return unique


class QueryPlanner:
    """Plans at most ``breadth`` SERP queries, each with a research goal."""

    def __init__(self, client: StructuredModelClient):
        self.client = client

    async def plan(
        self,
        prompt: str,
        breadth: int,
        prior_learnings: Sequence[str] | None = None,
    ) -> list[ResearchQuery]:
        instruction = QUERY_PLANNING_PROMPT.format(breadth=breadth, prompt=prompt)
        if prior_learnings:
            instruction += PRIOR_LEARNINGS_SUFFIX.format(
                learnings="\n".join(prior_learnings)
            )

        with log_duration(
            logger,
            "plan_queries",
            breadth=breadth,
            prior_learning_count=len(prior_learnings or []),
        ) as result_ctx:
            plan = await self.client.generate_object(
                SerpQueryPlan, instruction, system=researcher_system_prompt()
            )
            # The model is asked for the bound, the bound is enforced here
            queries = unique_queries(plan.queries)[:breadth]
            result_ctx["query_count"] = len(queries)
            result_ctx["queries"] = [q.query for q in queries]

        return queries
