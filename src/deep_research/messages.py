"""Chat messages as exchanged with the client, and their LangChain form."""

import json
import uuid
from collections.abc import Sequence
from typing import Annotated, Any, Literal

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .llm import message_text
from .tools import serialize_tool_result


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TextPart(_Model):
    type: Literal["text"] = "text"
    text: str


class ToolInvocation(_Model):
    """One tool call and, once known, its result.

    ``state`` is "call" while the result is unknown and "result" once a
    result (or a human decision standing in for it) is attached.
    """

    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    state: Literal["partial-call", "call", "result"] = "call"
    result: Any = None


class ToolInvocationPart(_Model):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_invocation: ToolInvocation


MessagePart = Annotated[TextPart | ToolInvocationPart, Field(discriminator="type")]


class UIMessage(_Model):
    id: str = Field(default_factory=lambda: f"msg-{uuid.uuid4().hex[:16]}")
    role: Literal["system", "user", "assistant"]
    content: str = ""
    parts: list[MessagePart] = Field(default_factory=list)

    @property
    def text(self) -> str:
        texts = [part.text for part in self.parts if isinstance(part, TextPart)]
        return "".join(texts) if texts else self.content

    @property
    def tool_invocations(self) -> list[ToolInvocation]:
        return [
            part.tool_invocation
            for part in self.parts
            if isinstance(part, ToolInvocationPart)
        ]


def to_langchain_messages(messages: Sequence[UIMessage]) -> list[BaseMessage]:
    """Convert client messages into model messages.

    Tool invocations without a result are dropped: the model only sees calls
    it can pair with a tool message.
    """
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.text))
        elif message.role == "user":
            converted.append(HumanMessage(content=message.text))
        else:
            answered = [
                inv for inv in message.tool_invocations if inv.state == "result"
            ]
            converted.append(
                AIMessage(
                    content=message.text,
                    tool_calls=[
                        {"id": inv.tool_call_id, "name": inv.tool_name, "args": inv.args}
                        for inv in answered
                    ],
                )
            )
            converted.extend(
                ToolMessage(
                    content=serialize_tool_result(inv.result),
                    tool_call_id=inv.tool_call_id,
                    name=inv.tool_name,
                )
                for inv in answered
            )
    return converted


def _parse_tool_content(content: str) -> Any:
    try:
        return json.loads(content)
    except ValueError:
        return content


def assistant_message_from(messages: Sequence[BaseMessage]) -> UIMessage:
    """Fold the model and tool messages of one turn into a single assistant message."""
    results = {
        m.tool_call_id: _parse_tool_content(message_text(m.content))
        for m in messages
        if isinstance(m, ToolMessage)
    }
    parts: list[TextPart | ToolInvocationPart] = []
    for message in messages:
        if not isinstance(message, AIMessage):
            continue
        text = message_text(message.content)
        if text:
            parts.append(TextPart(text=text))
        for call in message.tool_calls:
            answered = call["id"] in results
            parts.append(
                ToolInvocationPart(
                    tool_invocation=ToolInvocation(
                        tool_call_id=call["id"],
                        tool_name=call["name"],
                        args=call["args"],
                        state="result" if answered else "call",
                        result=results.get(call["id"]),
                    )
                )
            )
    return UIMessage(
        role="assistant",
        content="".join(p.text for p in parts if isinstance(p, TextPart)),
        parts=parts,
    )
