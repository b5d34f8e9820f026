"""Tests for chat messages, tool confirmation and the chat agent."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from src.deep_research.chat import (
    DEFAULT_CONFIRMATION_HANDLERS,
    ChatAgent,
    build_chat_tools,
    get_weather_information,
)
from src.deep_research.confirmation import (
    APPROVAL_NO,
    APPROVAL_YES,
    DENIED_RESULT,
    ToolCallContext,
    ToolConfirmationGate,
    awaiting_confirmation,
    tools_requiring_confirmation,
)
from src.deep_research.messages import (
    TextPart,
    ToolInvocation,
    ToolInvocationPart,
    UIMessage,
    assistant_message_from,
    to_langchain_messages,
)
from src.deep_research.progress import TextDelta, ToolResultEvent
from src.deep_research.state import DeepResearchOutcome, Report, Research, SearchResult


def weather_turn(result, state="result", call_id="call_1") -> list[UIMessage]:
    return [
        UIMessage(role="user", content="Weather in Paris?", parts=[TextPart(text="Weather in Paris?")]),
        UIMessage(
            role="assistant",
            parts=[
                ToolInvocationPart(
                    tool_invocation=ToolInvocation(
                        tool_call_id=call_id,
                        tool_name="get_weather_information",
                        args={"city": "Paris"},
                        state=state,
                        result=result,
                    )
                )
            ],
        ),
    ]


def streaming_client(*turns):
    """A client whose tool-bound model streams each turn's chunks in order."""
    remaining = list(turns)
    seen = []

    async def astream(messages):
        seen.append(list(messages))
        for chunk in remaining.pop(0):
            yield chunk

    model = MagicMock()
    model.astream = astream
    client = MagicMock()
    client.bind_tools.return_value = model
    return client, seen


class TestUIMessage:
    def test_parses_camel_case_payload(self):
        message = UIMessage.model_validate(
            {
                "id": "msg-1",
                "role": "assistant",
                "content": "",
                "parts": [
                    {"type": "text", "text": "Checking"},
                    {
                        "type": "tool-invocation",
                        "toolInvocation": {
                            "toolCallId": "call_1",
                            "toolName": "get_weather_information",
                            "args": {"city": "Paris"},
                            "state": "result",
                            "result": APPROVAL_YES,
                        },
                    },
                ],
            }
        )

        assert message.text == "Checking"
        assert message.tool_invocations[0].tool_call_id == "call_1"
        assert message.model_dump(by_alias=True)["parts"][1]["toolInvocation"]["toolName"] == (
            "get_weather_information"
        )

    def test_text_falls_back_to_content(self):
        assert UIMessage(role="user", content="hello").text == "hello"


class TestToLangchainMessages:
    def test_answered_calls_become_tool_messages(self):
        converted = to_langchain_messages(weather_turn("It is sunny"))

        assert isinstance(converted[0], HumanMessage)
        assert isinstance(converted[1], AIMessage)
        assert converted[1].tool_calls[0]["id"] == "call_1"
        assert isinstance(converted[2], ToolMessage)
        assert converted[2].content == "It is sunny"
        assert converted[2].tool_call_id == "call_1"

    def test_unanswered_calls_are_dropped(self):
        converted = to_langchain_messages(weather_turn(None, state="call"))

        assert len(converted) == 2
        assert converted[1].tool_calls == []

    def test_system_role(self):
        converted = to_langchain_messages([UIMessage(role="system", content="Be nice")])
        assert isinstance(converted[0], SystemMessage)


class TestAssistantMessageFrom:
    def test_folds_text_and_tool_results(self):
        messages = [
            AIMessage(
                content="Let me check. ",
                tool_calls=[{"id": "c1", "name": "web_search", "args": {"query": "ev"}}],
            ),
            ToolMessage(content='[{"title": "EV"}]', tool_call_id="c1"),
            AIMessage(content="Found it."),
        ]

        reply = assistant_message_from(messages)

        assert reply.role == "assistant"
        assert reply.text == "Let me check. Found it."
        invocation = reply.tool_invocations[0]
        assert invocation.state == "result"
        assert invocation.result == [{"title": "EV"}]

    def test_unanswered_call_stays_in_call_state(self):
        messages = [
            AIMessage(
                content="",
                tool_calls=[{"id": "c1", "name": "get_weather_information", "args": {}}],
            )
        ]

        invocation = assistant_message_from(messages).tool_invocations[0]

        assert invocation.state == "call"
        assert invocation.result is None


class TestToolConfirmationGate:
    @pytest.mark.asyncio
    async def test_approval_runs_handler(self, sink):
        handler = AsyncMock(return_value="The weather in Paris is sunny.")
        gate = ToolConfirmationGate({"get_weather_information": handler}, sink=sink)

        processed = await gate.process(weather_turn(APPROVAL_YES))

        result = processed[-1].tool_invocations[0].result
        assert result == "The weather in Paris is sunny."
        args, context = handler.call_args.args
        assert args == {"city": "Paris"}
        assert isinstance(context, ToolCallContext)
        assert context.tool_call_id == "call_1"
        assert sink.events == [
            ToolResultEvent(tool_call_id="call_1", result="The weather in Paris is sunny.")
        ]

    @pytest.mark.asyncio
    async def test_denial_skips_handler(self, sink):
        handler = AsyncMock()
        gate = ToolConfirmationGate({"get_weather_information": handler}, sink=sink)

        processed = await gate.process(weather_turn(APPROVAL_NO))

        assert processed[-1].tool_invocations[0].result == DENIED_RESULT
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_processing_twice_changes_nothing(self, sink):
        handler = AsyncMock(return_value="sunny")
        gate = ToolConfirmationGate({"get_weather_information": handler}, sink=sink)

        once = await gate.process(weather_turn(APPROVAL_YES))
        twice = await gate.process(once)

        assert twice == once
        assert handler.await_count == 1
        assert len(sink.events) == 1

    @pytest.mark.asyncio
    async def test_only_last_message_is_scanned(self, sink):
        handler = AsyncMock(return_value="sunny")
        gate = ToolConfirmationGate({"get_weather_information": handler}, sink=sink)
        messages = [*weather_turn(APPROVAL_YES), UIMessage(role="user", content="thanks")]

        processed = await gate.process(messages)

        assert processed == messages
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_tools_without_handler_untouched(self, sink):
        gate = ToolConfirmationGate({}, sink=sink)
        messages = weather_turn(APPROVAL_YES)

        assert await gate.process(messages) == messages

    @pytest.mark.asyncio
    async def test_empty_conversation(self):
        assert await ToolConfirmationGate({}).process([]) == []

    def test_awaiting_confirmation(self):
        assert awaiting_confirmation(
            ToolInvocation(tool_call_id="c", tool_name="t", state="result", result=APPROVAL_NO)
        )
        assert not awaiting_confirmation(
            ToolInvocation(tool_call_id="c", tool_name="t", state="call", result=APPROVAL_YES)
        )
        assert not awaiting_confirmation(
            ToolInvocation(tool_call_id="c", tool_name="t", state="result", result="sunny")
        )


class TestChatTools:
    def make_tools(self, results=None, outcome=None):
        search = MagicMock()
        search.search = AsyncMock(
            return_value=results
            or [
                SearchResult(
                    title=f"EV {i}",
                    content="Body",
                    url=f"https://www.example.com/{i}",
                    published_date="2024-01-01" if i == 0 else None,
                )
                for i in range(4)
            ]
        )
        session = MagicMock()
        session.run = AsyncMock(
            return_value=outcome
            or DeepResearchOutcome(research=Research(), report=Report(title="T", content="C"))
        )
        return build_chat_tools(search, lambda: session), search, session

    def test_weather_requires_confirmation(self):
        tools, _, _ = self.make_tools()
        assert tools_requiring_confirmation(tools) == ["get_weather_information"]
        assert set(DEFAULT_CONFIRMATION_HANDLERS) == {"get_weather_information"}

    @pytest.mark.asyncio
    async def test_web_search_shapes_and_limits_results(self):
        tools, search, _ = self.make_tools()

        results = await tools["web_search"].run({"query": "electric cars", "limit": 2})

        assert len(results) == 2
        assert results[0] == {
            "title": "EV 0",
            "url": "https://www.example.com/0",
            "snippet": "Body",
            "domain": "www.example.com",
            "date": "2024-01-01",
        }
        assert results[1]["date"] == "Date not available"
        search.search.assert_awaited_once_with("electric cars")

    @pytest.mark.asyncio
    async def test_web_search_validates_arguments(self):
        from pydantic import ValidationError

        tools, _, _ = self.make_tools()
        with pytest.raises(ValidationError):
            await tools["web_search"].run({"query": "ev", "limit": 11})

    @pytest.mark.asyncio
    async def test_deep_research_defaults(self):
        tools, _, session = self.make_tools()

        result = await tools["deep_research"].run({"prompt": "Electric cars"})

        session.run.assert_awaited_once_with("Electric cars", 1, 3)
        assert result["report"] == {"title": "T", "content": "C"}
        assert "questionsExplored" in result["research"]

    @pytest.mark.asyncio
    async def test_weather_handler(self):
        text = await get_weather_information({"city": "Paris"}, ToolCallContext("c1"))
        assert text.startswith("The weather in Paris is ")


class TestChatAgent:
    def make_agent(self, client, sink, handlers=None):
        tools, _, _ = TestChatTools().make_tools()
        return ChatAgent(
            client,
            tools,
            confirmation_handlers=handlers or DEFAULT_CONFIRMATION_HANDLERS,
            sink=sink,
        )

    @pytest.mark.asyncio
    async def test_plain_answer_streams_text(self, sink):
        client, _ = streaming_client([AIMessageChunk(content="Hi "), AIMessageChunk(content="there")])
        agent = self.make_agent(client, sink)

        conversation = await agent.respond([UIMessage(role="user", content="hello")])

        assert len(conversation) == 2
        assert conversation[-1].role == "assistant"
        assert conversation[-1].text == "Hi there"
        assert [e.text for e in sink.events if isinstance(e, TextDelta)] == ["Hi ", "there"]

    @pytest.mark.asyncio
    async def test_weather_call_stops_for_confirmation(self, sink):
        client, seen = streaming_client(
            [
                AIMessageChunk(
                    content="",
                    tool_call_chunks=[
                        {
                            "name": "get_weather_information",
                            "args": '{"city": "Paris"}',
                            "id": "call_9",
                            "index": 0,
                        }
                    ],
                )
            ]
        )
        agent = self.make_agent(client, sink)

        conversation = await agent.respond([UIMessage(role="user", content="Weather in Paris?")])

        assert len(seen) == 1
        invocation = conversation[-1].tool_invocations[0]
        assert invocation.tool_name == "get_weather_information"
        assert invocation.args == {"city": "Paris"}
        assert invocation.state == "call"

    @pytest.mark.asyncio
    async def test_confirmed_call_reaches_the_model_as_result(self, sink):
        handler = AsyncMock(return_value="The weather in Paris is rainy.")
        client, seen = streaming_client([AIMessageChunk(content="Bring an umbrella.")])
        agent = self.make_agent(client, sink, {"get_weather_information": handler})

        conversation = await agent.respond(weather_turn(APPROVAL_YES))

        assert conversation[1].tool_invocations[0].result == "The weather in Paris is rainy."
        history = seen[0]
        assert isinstance(history[0], SystemMessage)
        tool_messages = [m for m in history if isinstance(m, ToolMessage)]
        assert tool_messages[0].content == "The weather in Paris is rainy."
        assert conversation[-1].text == "Bring an umbrella."
