"""Schemas handed to the model for schema-constrained generation."""

from typing import Literal

from pydantic import BaseModel, Field

from .state import ResearchQuery, SearchResult


class SearchResultList(BaseModel):
    results: list[SearchResult] = Field(description="The web search results")


class SerpQueryPlan(BaseModel):
    queries: list[ResearchQuery] = Field(description="List of SERP queries")


class LearningBatch(BaseModel):
    learnings: list[str] = Field(description="List of learnings")
    follow_up_questions: list[str] = Field(
        description="List of follow-up questions to research the topic further"
    )


class LearningWithFollowUp(BaseModel):
    learning: str = Field(description="The learning from the search result")
    follow_up_questions: list[str] = Field(
        description="The follow-up questions from the search result"
    )


class RelevanceVerdict(BaseModel):
    verdict: Literal["relevant", "irrelevant"] = Field(
        description="Whether the search result is relevant to the query"
    )


class ReportTitle(BaseModel):
    title: str = Field(description="The impactful title of the report")
