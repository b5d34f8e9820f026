"""Chat agent: a streaming tool loop with deep research and human confirmation."""

import random
from collections.abc import Callable, Mapping, Sequence
from typing import Any
from urllib.parse import urlparse

from langchain_core.messages import SystemMessage
from pydantic import BaseModel, Field

from .agent import create_tool_agent, run_tool_agent
from .config import ResearchConfig
from .confirmation import ConfirmationHandler, ToolCallContext, ToolConfirmationGate
from .llm import StructuredModelClient, create_chat_model
from .logging import get_logger, log_duration
from .messages import UIMessage, assistant_message_from, to_langchain_messages
from .progress import NullProgressSink, ProgressSink, TextDelta
from .prompts import CHAT_SYSTEM_PROMPT
from .session import DeepResearchSession, create_research_session
from .tools import ToolSpec, WebSearchCapability, create_web_search, merge_tool_sets

logger = get_logger("chat")

WEATHER_CONDITIONS = ("sunny", "cloudy", "rainy", "snowy")


class WebSearchArgs(BaseModel):
    query: str = Field(
        min_length=1,
        max_length=200,
        description=(
            "The search query - be specific and include terms like 'vs', "
            "'features', 'comparison' for better results"
        ),
    )
    limit: int = Field(
        default=3, ge=1, le=10, description="The number of web search results to return"
    )


class DeepResearchArgs(BaseModel):
    prompt: str = Field(
        min_length=1,
        max_length=1000,
        description=(
            "This should take the user's exact prompt. Extract from the context "
            "but do not infer or change in any way."
        ),
    )
    depth: int = Field(
        default=1,
        ge=1,
        le=3,
        description="Default to 1 unless the user specifically references otherwise",
    )
    breadth: int = Field(
        default=3,
        ge=1,
        le=5,
        description="Default to 3 unless the user specifically references otherwise",
    )


class WeatherArgs(BaseModel):
    city: str = Field(min_length=1, description="The city to get the weather for")


async def get_weather_information(args: dict[str, Any], context: ToolCallContext) -> str:
    logger.info("weather_lookup", city=args.get("city"), tool_call_id=context.tool_call_id)
    return f"The weather in {args['city']} is {random.choice(WEATHER_CONDITIONS)}."


def build_chat_tools(
    search: WebSearchCapability,
    session_factory: Callable[[], DeepResearchSession],
) -> dict[str, ToolSpec]:
    """The default chat tool set.

    ``get_weather_information`` has no execute function: the loop stops on
    it and waits for a human decision.
    """

    async def web_search(query: str, limit: int = 3) -> list[dict[str, str]]:
        results = await search.search(query)
        return [
            {
                "title": r.title,
                "url": r.url,
                "snippet": r.content,
                "domain": urlparse(r.url).hostname or "",
                "date": (
                    r.published_date.date().isoformat()
                    if r.published_date
                    else "Date not available"
                ),
            }
            for r in results[:limit]
        ]

    async def deep_research(prompt: str, depth: int = 1, breadth: int = 3) -> dict[str, Any]:
        outcome = await session_factory().run(prompt, depth, breadth)
        return outcome.model_dump(by_alias=True, mode="json")

    return {
        "web_search": ToolSpec(
            name="web_search",
            description="Use this tool to search the web for information.",
            parameters=WebSearchArgs,
            execute=web_search,
        ),
        "deep_research": ToolSpec(
            name="deep_research",
            description="Use this tool to conduct a deep research on a given topic.",
            parameters=DeepResearchArgs,
            execute=deep_research,
        ),
        "get_weather_information": ToolSpec(
            name="get_weather_information",
            description="Show the weather in a given city to the user.",
            parameters=WeatherArgs,
        ),
    }


DEFAULT_CONFIRMATION_HANDLERS: dict[str, ConfirmationHandler] = {
    "get_weather_information": get_weather_information,
}


class ChatAgent:
    def __init__(
        self,
        client: StructuredModelClient,
        tools: Mapping[str, ToolSpec],
        confirmation_handlers: Mapping[str, ConfirmationHandler] | None = None,
        sink: ProgressSink | None = None,
        max_steps: int = 10,
    ):
        self.client = client
        self.tools = dict(tools)
        self.sink = sink or NullProgressSink()
        self.max_steps = max_steps
        self.gate = ToolConfirmationGate(confirmation_handlers or {}, sink=self.sink)

    async def respond(self, messages: Sequence[UIMessage]) -> list[UIMessage]:
        """Answer the conversation and return it with the new assistant message appended.

        Pending confirmations in the last message are resolved first, so the
        model sees real tool results instead of the human decision.
        """
        processed = await self.gate.process(messages)
        history = [SystemMessage(content=CHAT_SYSTEM_PROMPT), *to_langchain_messages(processed)]
        graph = create_tool_agent(
            self.client,
            self.tools,
            on_text=lambda text: self.sink.emit(TextDelta(text)),
        )

        with log_duration(
            logger, "chat_turn", message_count=len(processed), tools=sorted(self.tools)
        ) as result_ctx:
            state = await run_tool_agent(graph, history, self.max_steps)
            result_ctx["steps"] = state["step"]
            result_ctx["pending_confirmation"] = len(state["pending_confirmation"])

        reply = assistant_message_from(state["messages"][len(history):])
        return [*processed, reply]


def create_chat_agent(
    config: ResearchConfig | None = None,
    sink: ProgressSink | None = None,
    client: StructuredModelClient | None = None,
    search: WebSearchCapability | None = None,
    extra_tools: Mapping[str, ToolSpec] | None = None,
) -> ChatAgent:
    """Wire a chat agent with the default tools, merged with ``extra_tools``."""
    config = config or ResearchConfig.from_env()
    sink = sink or NullProgressSink()
    client = client or StructuredModelClient(create_chat_model(config), name="chat")
    if search is None:
        search_client = StructuredModelClient(
            create_chat_model(config, config.search_model_name), name="search"
        )
        search = create_web_search(config, search_client)

    tools = merge_tool_sets(
        build_chat_tools(
            search,
            lambda: create_research_session(config, sink=sink, client=client, search=search),
        ),
        extra_tools or {},
    )
    return ChatAgent(
        client,
        tools,
        confirmation_handlers=DEFAULT_CONFIRMATION_HANDLERS,
        sink=sink,
        max_steps=config.agent_max_steps,
    )
