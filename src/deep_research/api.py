"""HTTP boundary: JSON and server-sent-event endpoints over a research session.

Collaborators are built through factories kept on ``app.state`` so tests can
swap in fakes without touching the network.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from .chat import ChatAgent, create_chat_agent
from .config import (
    DEFAULT_BREADTH,
    DEFAULT_DEPTH,
    MAX_BREADTH,
    MAX_DEPTH,
    MIN_BREADTH,
    MIN_DEPTH,
    ResearchConfig,
)
from .errors import InvalidResearchRequest, UpstreamModelError
from .logging import get_logger, research_context
from .messages import UIMessage
from .progress import NullProgressSink, ProgressSink, QueueProgressSink
from .session import DeepResearchSession, create_research_session

logger = get_logger("api")

SessionFactory = Callable[[ProgressSink], DeepResearchSession]
ChatFactory = Callable[[ProgressSink], ChatAgent]

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class DeepResearchRequest(BaseModel):
    query: str = Field(min_length=1, description="The research question")
    depth: int = Field(default=DEFAULT_DEPTH, ge=MIN_DEPTH, le=MAX_DEPTH)
    breadth: int = Field(default=DEFAULT_BREADTH, ge=MIN_BREADTH, le=MAX_BREADTH)


class ChatRequest(BaseModel):
    messages: list[UIMessage] = Field(min_length=1)


def _sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


async def stream_with_sink(
    sink: QueueProgressSink, work: Callable[[], Awaitable[Any]]
) -> AsyncIterator[str]:
    """Run ``work`` in a task and stream the sink's events, then a final sentinel.

    The sentinel is ``{"type": "result"}`` on success and ``{"type": "error"}``
    on failure. Closing the stream early (client disconnect) cancels the task.
    """

    async def run() -> Any:
        try:
            return await work()
        finally:
            sink.close()

    task = asyncio.create_task(run())
    try:
        async for event in sink.stream():
            yield _sse(event.to_annotation())
        try:
            result = await task
        except (InvalidResearchRequest, UpstreamModelError) as e:
            logger.error("stream_failed", error=str(e), error_type=type(e).__name__)
            yield _sse({"type": "error", "data": {"message": str(e)}})
        except Exception as e:
            logger.exception("stream_crashed", error_type=type(e).__name__)
            yield _sse({"type": "error", "data": {"message": "Internal error"}})
        else:
            yield _sse({"type": "result", "data": result})
    finally:
        if not task.done():
            logger.info("stream_cancelled")
            task.cancel()


def create_app(
    session_factory: SessionFactory | None = None,
    chat_factory: ChatFactory | None = None,
    config: ResearchConfig | None = None,
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        session_factory: Builds a research session emitting to a given sink.
        chat_factory: Builds a chat agent emitting to a given sink.
        config: Used by the default factories; read from the environment
            when omitted.
    """
    app = FastAPI(title="Recursive Deep Research")

    def default_session_factory(sink: ProgressSink) -> DeepResearchSession:
        return create_research_session(config or ResearchConfig.from_env(), sink=sink)

    def default_chat_factory(sink: ProgressSink) -> ChatAgent:
        return create_chat_agent(config or ResearchConfig.from_env(), sink=sink)

    app.state.session_factory = session_factory or default_session_factory
    app.state.chat_factory = chat_factory or default_chat_factory

    @app.exception_handler(InvalidResearchRequest)
    async def invalid_request_handler(request: Request, exc: InvalidResearchRequest):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(UpstreamModelError)
    async def upstream_error_handler(request: Request, exc: UpstreamModelError):
        logger.error("upstream_error", error=str(exc), operation=exc.operation)
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.post("/deep-research")
    async def deep_research(body: DeepResearchRequest, request: Request):
        session = request.app.state.session_factory(NullProgressSink())
        with research_context(route="/deep-research"):
            outcome = await session.run(body.query, body.depth, body.breadth)
        return outcome.model_dump(by_alias=True, mode="json")

    @app.post("/deep-research/stream")
    async def deep_research_stream(body: DeepResearchRequest, request: Request):
        sink = QueueProgressSink()
        session = request.app.state.session_factory(sink)

        async def work() -> dict[str, Any]:
            with research_context(route="/deep-research/stream"):
                outcome = await session.run(body.query, body.depth, body.breadth)
            return outcome.model_dump(by_alias=True, mode="json")

        return StreamingResponse(
            stream_with_sink(sink, work),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.post("/chat")
    async def chat(body: ChatRequest, request: Request):
        sink = QueueProgressSink()
        agent = request.app.state.chat_factory(sink)

        async def work() -> list[dict[str, Any]]:
            with research_context(route="/chat"):
                messages = await agent.respond(body.messages)
            return [m.model_dump(by_alias=True, mode="json") for m in messages]

        return StreamingResponse(
            stream_with_sink(sink, work),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return app
