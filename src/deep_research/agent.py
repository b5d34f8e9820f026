"""Bounded tool-calling agent loop built on LangGraph, and the search/evaluate agent."""

from collections.abc import Callable, Mapping, Sequence
from typing import Annotated, Literal, TypedDict

from langchain_core.messages import (
    AIMessage,
    AnyMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from pydantic import BaseModel, Field, ValidationError

from .errors import UpstreamModelError
from .llm import StructuredModelClient, message_text
from .logging import get_logger, log_duration, preview
from .prompts import (
    IRRELEVANT_RESULT_MESSAGE,
    NOTHING_TO_EVALUATE_MESSAGE,
    RELEVANCE_PROMPT,
    RELEVANT_RESULT_MESSAGE,
    SEARCH_AGENT_PROMPT,
    SEARCH_AGENT_SYSTEM_PROMPT,
)
from .schemas import RelevanceVerdict
from .state import SearchResult
from .tools import ToolSpec, WebSearchCapability, serialize_tool_result

logger = get_logger("agent")


class AgentState(TypedDict):
    """State of the tool loop.

    Attributes:
        messages: Conversation so far, model and tool messages included.
        step: Model calls made so far.
        max_steps: Model call budget.
        pending_confirmation: Tool calls left for an external decision.
    """

    messages: Annotated[list[AnyMessage], add_messages]
    step: int
    max_steps: int
    pending_confirmation: list[str]


def create_tool_agent(
    client: StructuredModelClient,
    tools: Mapping[str, ToolSpec],
    on_text: Callable[[str], None] | None = None,
):
    """Create a tool-calling loop as a compiled StateGraph.

    The loop alternates model calls and tool execution. It stops when the
    model calls no tool, when a called tool needs external confirmation, or
    once ``max_steps`` model calls have been made; tools requested by the
    final allowed step still run. Tool calls of one step run sequentially, in
    the order the model issued them.

    Args:
        client: Model client whose model gets the tools bound.
        tools: Tools by name.
        on_text: When given, the model output is streamed and text chunks are
            passed here as they arrive.

    Returns:
        A compiled LangGraph StateGraph.
    """
    model = (
        client.bind_tools([spec.to_openai_tool() for spec in tools.values()])
        if tools
        else client.model
    )

    async def call_model(state: AgentState) -> dict:
        step = state["step"] + 1
        with log_duration(logger, "agent_step", step=step) as result_ctx:
            try:
                if on_text is None:
                    response = await model.ainvoke(state["messages"])
                else:
                    response = await _stream_response(model, state["messages"], on_text)
            except Exception as e:
                raise UpstreamModelError(
                    f"Agent model call failed: {e}", operation="agent_step"
                ) from e
            result_ctx["tool_calls"] = [call["name"] for call in response.tool_calls]
        return {"messages": [response], "step": step}

    async def call_tools(state: AgentState) -> dict:
        last = state["messages"][-1]
        results: list[ToolMessage] = []
        pending: list[str] = []
        for call in last.tool_calls:
            spec = tools.get(call["name"])
            if spec is None:
                results.append(
                    ToolMessage(
                        content=f"Error: unknown tool {call['name']}",
                        tool_call_id=call["id"],
                        name=call["name"],
                    )
                )
                continue
            if spec.requires_confirmation:
                pending.append(call["id"])
                continue
            try:
                params = spec.validate_args(call["args"])
            except ValidationError as e:
                raise UpstreamModelError(
                    f"Model sent invalid arguments to {spec.name}: {e}",
                    operation="tool_call",
                ) from e
            with log_duration(logger, "tool_call", tool=spec.name):
                result = await spec.execute(**params.model_dump())
            results.append(
                ToolMessage(
                    content=serialize_tool_result(result),
                    tool_call_id=call["id"],
                    name=spec.name,
                )
            )
        return {"messages": results, "pending_confirmation": pending}

    def after_model(state: AgentState) -> Literal["tools", "end"]:
        last = state["messages"][-1]
        if isinstance(last, AIMessage) and last.tool_calls:
            return "tools"
        return "end"

    def after_tools(state: AgentState) -> Literal["model", "end"]:
        if state.get("pending_confirmation"):
            decision, reason = "end", "awaiting_confirmation"
        elif state["step"] >= state["max_steps"]:
            decision, reason = "end", "step_budget_exhausted"
        else:
            decision, reason = "model", "continue"
        logger.debug(
            "routing_decision",
            decision=decision,
            reason=reason,
            step=state["step"],
            max_steps=state["max_steps"],
        )
        return decision

    graph = StateGraph(AgentState)
    graph.add_node("model", call_model)
    graph.add_node("tools", call_tools)
    graph.set_entry_point("model")
    graph.add_conditional_edges("model", after_model, {"tools": "tools", "end": END})
    graph.add_conditional_edges("tools", after_tools, {"model": "model", "end": END})
    return graph.compile()


async def _stream_response(model, messages: Sequence[AnyMessage], on_text) -> AIMessage:
    aggregate = None
    async for chunk in model.astream(messages):
        text = message_text(chunk.content)
        if text:
            on_text(text)
        aggregate = chunk if aggregate is None else aggregate + chunk
    if aggregate is None:
        return AIMessage(content="")
    return AIMessage(
        content=aggregate.content, tool_calls=aggregate.tool_calls, id=aggregate.id
    )


async def run_tool_agent(
    graph, messages: Sequence[AnyMessage], max_steps: int
) -> AgentState:
    """Run a compiled tool agent from ``messages`` within ``max_steps`` model calls."""
    return await graph.ainvoke(
        {
            "messages": list(messages),
            "step": 0,
            "max_steps": max_steps,
            "pending_confirmation": [],
        },
        # Two graph steps per model call, plus slack for the entry
        config={"recursion_limit": 2 * max_steps + 5},
    )


class SearchWebArgs(BaseModel):
    query: str = Field(min_length=1, description="The search query")


class EvaluateArgs(BaseModel):
    pass


class SearchEvaluationAgent:
    """Lets the model search and judge results until it is satisfied.

    ``searchWeb`` pushes results onto a pending list. ``evaluate`` pops the
    most recent pending result and asks the model whether it is relevant and
    new; relevant results are accepted, irrelevant ones tell the agent to
    search again with a more specific query. The evaluate call carries no
    result id, so it is only well defined when each search is followed by
    exactly one evaluate; the system prompt asks for that ordering.
    """

    def __init__(
        self,
        client: StructuredModelClient,
        search: WebSearchCapability,
        max_steps: int = 10,
    ):
        self.client = client
        self.search = search
        self.max_steps = max_steps

    def _tools(
        self,
        query: str,
        accumulated_sources: Sequence[SearchResult],
        pending: list[SearchResult],
        accepted: list[SearchResult],
    ) -> dict[str, ToolSpec]:
        async def search_web(query: str) -> list[SearchResult]:
            results = await self.search.search(query)
            pending.extend(results)
            return results

        async def evaluate() -> str:
            if not pending:
                return NOTHING_TO_EVALUATE_MESSAGE
            candidate = pending.pop()
            verdict = await self.client.generate_object(
                RelevanceVerdict,
                RELEVANCE_PROMPT.format(
                    query=query,
                    search_result=candidate.model_dump_json(by_alias=True),
                    existing_urls=[source.url for source in accumulated_sources],
                ),
            )
            logger.debug("result_evaluated", url=candidate.url, verdict=verdict.verdict)
            if verdict.verdict == "relevant":
                accepted.append(candidate)
                return RELEVANT_RESULT_MESSAGE
            return IRRELEVANT_RESULT_MESSAGE

        return {
            "searchWeb": ToolSpec(
                name="searchWeb",
                description="Search the web for information about a given query",
                parameters=SearchWebArgs,
                execute=search_web,
            ),
            "evaluate": ToolSpec(
                name="evaluate",
                description="Evaluate the search results",
                parameters=EvaluateArgs,
                execute=evaluate,
            ),
        }

    async def run(
        self, query: str, accumulated_sources: Sequence[SearchResult] = ()
    ) -> list[SearchResult]:
        """Resolve ``query`` and return the accepted results in acceptance order."""
        pending: list[SearchResult] = []
        accepted: list[SearchResult] = []
        graph = create_tool_agent(
            self.client, self._tools(query, accumulated_sources, pending, accepted)
        )

        with log_duration(
            logger, "search_and_evaluate", query=preview(query)
        ) as result_ctx:
            state = await run_tool_agent(
                graph,
                [
                    SystemMessage(content=SEARCH_AGENT_SYSTEM_PROMPT),
                    HumanMessage(content=SEARCH_AGENT_PROMPT.format(query=query)),
                ],
                self.max_steps,
            )
            result_ctx["steps"] = state["step"]
            result_ctx["accepted_count"] = len(accepted)
            result_ctx["unevaluated_count"] = len(pending)
        return accepted
