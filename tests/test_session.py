"""Tests for research sessions and their wiring."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.deep_research.config import ResearchConfig
from src.deep_research.engine import DeepResearchEngine
from src.deep_research.errors import InvalidResearchRequest
from src.deep_research.session import (
    DeepResearchSession,
    create_research_session,
    validate_request,
)
from src.deep_research.state import Report

from .fakes import FakeExtractor, FakePlanner, FakeSearch


def make_session(sink, config, search=None):
    engine = DeepResearchEngine(
        FakePlanner(), search or FakeSearch(), FakeExtractor(), sink=sink, config=config
    )
    synthesizer = MagicMock()
    synthesizer.generate = AsyncMock(
        return_value=Report(title="EVs Explained", content="# Report")
    )
    return DeepResearchSession(engine, synthesizer, config)


class TestValidateRequest:
    @pytest.mark.parametrize(
        "query,depth,breadth",
        [
            ("", 1, 2),
            ("   ", 1, 2),
            ("topic", 0, 2),
            ("topic", 4, 2),
            ("topic", 1, 0),
            ("topic", 1, 6),
        ],
    )
    def test_rejects_out_of_bounds(self, query, depth, breadth):
        with pytest.raises(InvalidResearchRequest):
            validate_request(query, depth, breadth)

    def test_accepts_bounds(self):
        validate_request("topic", 1, 1)
        validate_request("topic", 3, 5)


class TestDeepResearchSession:
    @pytest.mark.asyncio
    async def test_invalid_request_makes_no_calls(self, sink, fast_config):
        search = FakeSearch()
        session = make_session(sink, fast_config, search)

        with pytest.raises(InvalidResearchRequest):
            await session.run("topic", depth=5)

        assert search.queries == []
        session.synthesizer.generate.assert_not_called()
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_run_returns_research_and_report(self, sink, fast_config):
        session = make_session(sink, fast_config)

        outcome = await session.run("Electric cars", depth=1, breadth=2)

        assert outcome.report.title == "EVs Explained"
        assert outcome.research.search_queries == ["root/1", "root/2"]
        assert sink.statuses[0] == "Beginning deep research"
        assert sink.statuses[-2:] == ["Generating report...", "Successfully generated report"]

    @pytest.mark.asyncio
    async def test_response_sources_deduped_and_truncated(self, sink, fast_config):
        class RepeatingSearch(FakeSearch):
            async def search(self, query):
                results = await super().search("shared")
                return [r.model_copy(update={"content": "c" * 80}) for r in results]

        session = make_session(sink, fast_config, RepeatingSearch())

        outcome = await session.run("topic", depth=1, breadth=3)

        assert len(outcome.research.sources) == 1
        assert outcome.research.sources[0].content == "c" * 50 + "..."
        assert outcome.total_source_count == 3
        assert "totalSourceCount" not in outcome.model_dump(by_alias=True)
        assert len(outcome.research.search_queries) == 3

    @pytest.mark.asyncio
    async def test_outcome_serializes_camel_case(self, sink, fast_config):
        session = make_session(sink, fast_config)

        outcome = await session.run("topic")
        body = outcome.model_dump(by_alias=True)

        assert set(body["research"]) == {
            "learnings",
            "sources",
            "questionsExplored",
            "searchQueries",
        }
        assert body["report"] == {"title": "EVs Explained", "content": "# Report"}


class TestCreateResearchSession:
    @patch("src.deep_research.llm.ChatOpenAI")
    def test_wires_configured_collaborators(self, mock_openai, sink):
        config = ResearchConfig(model_name="gpt-4", search_model_name="gpt-4-search")

        session = create_research_session(config, sink=sink)

        assert session.sink is sink
        assert session.config is config
        assert session.synthesizer.source_chars == 350
        models = [call.kwargs["model"] for call in mock_openai.call_args_list]
        assert models == ["gpt-4", "gpt-4-search"]

    @patch("src.deep_research.llm.ChatOpenAI")
    @patch("src.deep_research.tools.DDGS")
    def test_duckduckgo_backend(self, mock_ddgs, mock_openai):
        from src.deep_research.tools import DuckDuckGoWebSearch

        config = ResearchConfig(search_backend="duckduckgo")

        session = create_research_session(config)

        assert isinstance(session.engine.search, DuckDuckGoWebSearch)
