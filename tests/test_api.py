"""Tests for the HTTP endpoints."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessageChunk

from src.deep_research.api import create_app, stream_with_sink
from src.deep_research.chat import ChatAgent, build_chat_tools
from src.deep_research.errors import InvalidResearchRequest, UpstreamModelError
from src.deep_research.messages import UIMessage
from src.deep_research.progress import QueueProgressSink, SourceEvent, StatusEvent, TextDelta
from src.deep_research.state import DeepResearchOutcome, Report, Research, SearchResult

OUTCOME = DeepResearchOutcome(
    research=Research(
        learnings=["EVs are efficient"],
        sources=[SearchResult(title="EV", content="c...", url="https://ev.example")],
        questions_explored=["Range?"],
        search_queries=["electric cars"],
    ),
    report=Report(title="EVs Today", content="# EVs"),
)


class FakeSession:
    def __init__(self, sink, error=None):
        self.sink = sink
        self.error = error
        self.calls = []

    async def run(self, query, depth=1, breadth=2):
        self.calls.append((query, depth, breadth))
        self.sink.emit(StatusEvent("Beginning deep research"))
        self.sink.emit(SourceEvent(title="EV", url="https://ev.example"))
        if self.error:
            raise self.error
        return OUTCOME


def events_of(body: str) -> list[dict]:
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


def client_for(error=None, chat_factory=None):
    sessions = []

    def session_factory(sink):
        session = FakeSession(sink, error)
        sessions.append(session)
        return session

    app = create_app(session_factory=session_factory, chat_factory=chat_factory)
    return TestClient(app), sessions


class TestDeepResearchEndpoint:
    def test_returns_outcome(self):
        client, sessions = client_for()

        response = client.post("/deep-research", json={"query": "Electric cars", "depth": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["report"]["title"] == "EVs Today"
        assert body["research"]["searchQueries"] == ["electric cars"]
        assert sessions[0].calls == [("Electric cars", 2, 2)]

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"query": ""},
            {"query": "x", "depth": 0},
            {"query": "x", "depth": 4},
            {"query": "x", "breadth": 6},
        ],
    )
    def test_validation_errors(self, payload):
        client, sessions = client_for()

        response = client.post("/deep-research", json=payload)

        assert response.status_code == 422
        assert sessions == []

    def test_invalid_request_from_session_is_400(self):
        client, _ = client_for(error=InvalidResearchRequest("query is required"))

        response = client.post("/deep-research", json={"query": "   "})

        assert response.status_code == 400
        assert response.json()["detail"] == "query is required"

    def test_upstream_failure_is_502(self):
        client, _ = client_for(error=UpstreamModelError("model down"))

        response = client.post("/deep-research", json={"query": "Electric cars"})

        assert response.status_code == 502
        assert response.json() == {"detail": "model down"}


class TestDeepResearchStream:
    def test_streams_annotations_then_result(self):
        client, _ = client_for()

        response = client.post("/deep-research/stream", json={"query": "Electric cars"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = events_of(response.text)
        assert events[0] == {"type": "status", "data": {"title": "Beginning deep research"}}
        assert events[1] == {
            "type": "source",
            "data": {"title": "EV", "url": "https://ev.example"},
        }
        assert events[-1]["type"] == "result"
        assert events[-1]["data"]["report"]["content"] == "# EVs"

    def test_upstream_failure_ends_with_error_sentinel(self):
        client, _ = client_for(error=UpstreamModelError("model down"))

        response = client.post("/deep-research/stream", json={"query": "Electric cars"})

        events = events_of(response.text)
        assert events[-1] == {"type": "error", "data": {"message": "model down"}}
        assert all(e["type"] != "result" for e in events)

    def test_validation_happens_before_streaming(self):
        client, _ = client_for()
        response = client.post("/deep-research/stream", json={"query": "x", "depth": 9})
        assert response.status_code == 422


class TestChatEndpoint:
    def test_streams_text_and_conversation(self):
        agent = MagicMock()
        sinks = []

        def chat_factory(sink):
            sinks.append(sink)

            async def respond(messages):
                sink.emit(TextDelta("Hello"))
                return [*messages, UIMessage(role="assistant", content="Hello")]

            agent.respond = AsyncMock(side_effect=respond)
            return agent

        client, _ = client_for(chat_factory=chat_factory)

        response = client.post(
            "/chat", json={"messages": [{"role": "user", "content": "hi"}]}
        )

        events = events_of(response.text)
        assert events[0] == {"type": "text", "data": {"text": "Hello"}}
        assert events[-1]["type"] == "result"
        assert events[-1]["data"][-1]["content"] == "Hello"

    def test_invalid_tool_arguments_end_with_error_sentinel(self):
        async def astream(messages):
            yield AIMessageChunk(
                content="",
                tool_call_chunks=[
                    {
                        "name": "deep_research",
                        "args": '{"prompt": "Electric cars", "depth": 9}',
                        "id": "call_1",
                        "index": 0,
                    }
                ],
            )

        model = MagicMock()
        model.astream = astream
        llm = MagicMock()
        llm.bind_tools.return_value = model
        session = MagicMock()
        session.run = AsyncMock(return_value=OUTCOME)

        def chat_factory(sink):
            tools = build_chat_tools(MagicMock(), lambda: session)
            return ChatAgent(llm, tools, sink=sink)

        client, _ = client_for(chat_factory=chat_factory)

        response = client.post(
            "/chat", json={"messages": [{"role": "user", "content": "Research EVs"}]}
        )

        events = events_of(response.text)
        assert events[-1]["type"] == "error"
        assert "deep_research" in events[-1]["data"]["message"]
        session.run.assert_not_called()

    def test_empty_conversation_rejected(self):
        client, _ = client_for(chat_factory=MagicMock())
        assert client.post("/chat", json={"messages": []}).status_code == 422


class TestStreamWithSink:
    @pytest.mark.asyncio
    async def test_closing_the_stream_cancels_work(self):
        sink = QueueProgressSink()
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def work():
            sink.emit(StatusEvent("working"))
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        stream = stream_with_sink(sink, work)
        first = await stream.__anext__()
        await started.wait()
        await stream.aclose()

        assert json.loads(first[len("data: "):])["data"]["title"] == "working"
        await asyncio.wait_for(cancelled.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_unexpected_failure_ends_with_error_sentinel(self):
        sink = QueueProgressSink()

        async def work():
            sink.emit(StatusEvent("working"))
            raise KeyError("boom")

        chunks = [chunk async for chunk in stream_with_sink(sink, work)]

        events = [json.loads(chunk[len("data: "):]) for chunk in chunks]
        assert events[0]["type"] == "status"
        assert events[-1] == {"type": "error", "data": {"message": "Internal error"}}
