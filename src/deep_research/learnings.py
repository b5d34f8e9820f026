"""Learning extraction from a batch of search results."""

from collections.abc import Sequence

from .llm import StructuredModelClient
from .logging import get_logger, log_duration
from .prompts import LEARNING_EXTRACTION_PROMPT, researcher_system_prompt
from .schemas import LearningBatch
from .state import ExtractedLearnings, SearchResult

logger = get_logger("learnings")


def format_contents(results: Sequence[SearchResult]) -> str:
    return "\n".join(f"<content>\n{result.content}\n</content>" for result in results)


class LearningExtractor:
    """Distills dense learnings and follow-up questions from search results."""

    def __init__(self, client: StructuredModelClient):
        self.client = client

    async def extract(
        self,
        query: str,
        results: Sequence[SearchResult],
        max_learnings: int,
        max_follow_ups: int,
    ) -> ExtractedLearnings:
        prompt = LEARNING_EXTRACTION_PROMPT.format(
            query=query,
            max_learnings=max_learnings,
            max_follow_ups=max_follow_ups,
            contents=format_contents(results),
        )
        with log_duration(
            logger, "extract_learnings", result_count=len(results)
        ) as result_ctx:
            batch = await self.client.generate_object(
                LearningBatch, prompt, system=researcher_system_prompt()
            )
            extracted = ExtractedLearnings(
                learnings=batch.learnings[:max_learnings],
                follow_up_questions=batch.follow_up_questions[:max_follow_ups],
            )
            result_ctx["learning_count"] = len(extracted.learnings)
            result_ctx["follow_up_count"] = len(extracted.follow_up_questions)
        return extracted
