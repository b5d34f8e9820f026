"""Data model for research runs.

All models serialize with camelCase aliases (``questionsExplored``,
``publishedDate`` ...) so they can be returned over HTTP as-is.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchResult(_Model):
    """A single web search hit. Identity for deduplication is the url."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    title: str = Field(description="The title of the search result")
    content: str = Field(description="The content of the search result")
    url: str = Field(description="The url of the search result source")
    published_date: datetime | None = Field(
        default=None,
        description="The date the search result was published (ISO 8601)",
    )


class ResearchQuery(_Model):
    """A planned sub-query together with the goal it serves."""

    query: str = Field(description="The SERP query")
    research_goal: str = Field(
        description=(
            "First talk about the goal of the research that this query is meant to "
            "accomplish, then go deeper into how to advance the research once the "
            "results are found, mention additional research directions. Be as "
            "specific as possible, especially for additional research directions."
        )
    )


class Learning(_Model):
    """A learning tied to the follow-up questions it raised."""

    learning: str = Field(description="The learning from the search result")
    follow_up_questions: list[str] = Field(
        default_factory=list,
        description="The follow-up questions from the search result",
    )


class ExtractedLearnings(_Model):
    """Output of one learning extraction over a batch of search results."""

    learnings: list[str] = Field(default_factory=list)
    follow_up_questions: list[str] = Field(default_factory=list)


class Research(_Model):
    """Append-only accumulator threaded through the recursion by merge.

    Attributes:
        learnings: Dense factual statements gathered at every visited node.
        sources: Every search result seen, duplicates included until report time.
        questions_explored: Follow-up questions raised along the way.
        search_queries: Queries actually searched, in branch order.
    """

    learnings: list[str] = Field(default_factory=list)
    sources: list[SearchResult] = Field(default_factory=list)
    questions_explored: list[str] = Field(default_factory=list)
    search_queries: list[str] = Field(default_factory=list)

    def extend(self, other: "Research") -> "Research":
        """Append every field of ``other`` to this accumulator in place."""
        self.learnings.extend(other.learnings)
        self.sources.extend(other.sources)
        self.questions_explored.extend(other.questions_explored)
        self.search_queries.extend(other.search_queries)
        return self


class AlternateResearchState(_Model):
    """Accumulator of the agent-driven variant.

    Merged from child results exactly like ``Research``; it is never shared
    between concurrently running calls.
    """

    query: str | None = None
    queries: list[str] = Field(default_factory=list)
    search_results: list[SearchResult] = Field(default_factory=list)
    learnings: list[Learning] = Field(default_factory=list)
    completed_queries: list[str] = Field(default_factory=list)

    def extend(self, other: "AlternateResearchState") -> "AlternateResearchState":
        self.queries.extend(other.queries)
        self.search_results.extend(other.search_results)
        self.learnings.extend(other.learnings)
        self.completed_queries.extend(other.completed_queries)
        return self


class Report(_Model):
    title: str
    content: str


class DeepResearchOutcome(_Model):
    """Response body of a completed research session."""

    research: Research
    report: Report
    # Sources found before url dedup; kept off the wire
    total_source_count: int = Field(default=0, exclude=True)
