"""Report synthesis from an accumulated research object."""

from collections.abc import Sequence

from .llm import StructuredModelClient
from .logging import get_logger, log_duration
from .prompts import REPORT_PROMPT, REPORT_TITLE_PROMPT, researcher_system_prompt
from .schemas import ReportTitle
from .state import Report, Research, SearchResult

logger = get_logger("report")


def dedupe_sources(
    sources: Sequence[SearchResult],
    max_content_chars: int | None = None,
    suffix: str = "",
) -> list[SearchResult]:
    """Keep the first source seen for each url, optionally truncating its content."""
    unique: dict[str, SearchResult] = {}
    for source in sources:
        if source.url in unique:
            continue
        if max_content_chars is not None:
            source = source.model_copy(
                update={"content": source.content[:max_content_chars] + suffix}
            )
        unique[source.url] = source
    return list(unique.values())


def _tagged(tag: str, items: Sequence[str]) -> str:
    return "".join(f"\n<{tag}>{item}</{tag}>" for item in items)


def build_report_prompt(prompt: str, research: Research, source_chars: int) -> str:
    sources = dedupe_sources(research.sources, max_content_chars=source_chars)
    return REPORT_PROMPT.format(
        prompt=prompt,
        learnings=_tagged("learning", research.learnings),
        search_queries=_tagged("query", research.search_queries),
        questions=_tagged("question", research.questions_explored),
        sources=_tagged("source", [s.model_dump_json(by_alias=True) for s in sources]),
    )


class ReportSynthesizer:
    """Writes a long-form markdown report and a short title for it."""

    def __init__(self, client: StructuredModelClient, source_chars: int = 350):
        self.client = client
        self.source_chars = source_chars

    async def generate(self, prompt: str, research: Research) -> Report:
        with log_duration(
            logger,
            "generate_report",
            learning_count=len(research.learnings),
            source_count=len(research.sources),
        ) as result_ctx:
            content = await self.client.generate_text(
                build_report_prompt(prompt, research, self.source_chars),
                system=researcher_system_prompt("Write in markdown syntax."),
            )
            title = await self.client.generate_object(
                ReportTitle, REPORT_TITLE_PROMPT.format(report=content)
            )
            result_ctx["report_length"] = len(content)
            result_ctx["title"] = title.title
        return Report(title=title.title, content=content)
