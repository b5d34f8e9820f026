"""Pytest configuration and fixtures."""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.deep_research.config import ResearchConfig  # noqa: E402
from src.deep_research.progress import CollectingProgressSink  # noqa: E402

from .fakes import FakeExtractor, FakePlanner, FakeSearch  # noqa: E402


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Set mock environment variables for testing."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-api-key")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")


@pytest.fixture
def fast_config():
    return ResearchConfig(source_emit_delay=0, max_concurrency=8)


@pytest.fixture
def sink():
    return CollectingProgressSink()


@pytest.fixture
def planner():
    return FakePlanner()


@pytest.fixture
def search():
    return FakeSearch()


@pytest.fixture
def extractor():
    return FakeExtractor()
