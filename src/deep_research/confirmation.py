"""Human-in-the-loop confirmation for tools that cannot run on their own.

A tool offered without an ``execute`` function stops the model loop when it
is called. The client shows the call to a human and posts the decision back
as the invocation's result: ``APPROVAL_YES`` or ``APPROVAL_NO``. Before the
next model call, the gate replaces that decision with the real outcome: the
handler's return value on approval, ``DENIED_RESULT`` on denial.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from langchain_core.messages import BaseMessage

from .logging import get_logger
from .messages import ToolInvocation, ToolInvocationPart, UIMessage, to_langchain_messages
from .progress import NullProgressSink, ProgressSink, ToolResultEvent
from .tools import ToolSpec

logger = get_logger("confirmation")

APPROVAL_YES = "Yes, confirmed."
APPROVAL_NO = "No, denied."
DENIED_RESULT = "Error: User denied access to tool execution"


@dataclass
class ToolCallContext:
    tool_call_id: str
    messages: list[BaseMessage] = field(default_factory=list)


ConfirmationHandler = Callable[[dict[str, Any], ToolCallContext], Awaitable[Any]]


def tools_requiring_confirmation(tools: Mapping[str, ToolSpec]) -> list[str]:
    return [name for name, spec in tools.items() if spec.requires_confirmation]


def awaiting_confirmation(invocation: ToolInvocation) -> bool:
    """True when the invocation holds a human decision instead of a real result."""
    return invocation.state == "result" and invocation.result in (
        APPROVAL_YES,
        APPROVAL_NO,
    )


class ToolConfirmationGate:
    """Resolves confirmed tool calls found in the last message of a conversation.

    Only the last message is scanned. Invocations whose tool has no handler,
    or that already carry a real result, are left untouched, so running the
    gate again on its own output changes nothing.
    """

    def __init__(
        self,
        handlers: Mapping[str, ConfirmationHandler],
        sink: ProgressSink | None = None,
    ):
        self.handlers = dict(handlers)
        self.sink = sink or NullProgressSink()

    async def process(self, messages: Sequence[UIMessage]) -> list[UIMessage]:
        if not messages or not messages[-1].parts:
            return list(messages)

        last = messages[-1]
        parts = await asyncio.gather(
            *(self._process_part(part, messages) for part in last.parts)
        )
        return [*messages[:-1], last.model_copy(update={"parts": list(parts)})]

    async def _process_part(self, part, messages: Sequence[UIMessage]):
        if not isinstance(part, ToolInvocationPart):
            return part
        invocation = part.tool_invocation
        handler = self.handlers.get(invocation.tool_name)
        if handler is None or not awaiting_confirmation(invocation):
            return part

        if invocation.result == APPROVAL_YES:
            logger.info(
                "tool_confirmed",
                tool=invocation.tool_name,
                tool_call_id=invocation.tool_call_id,
            )
            result = await handler(
                invocation.args,
                ToolCallContext(
                    tool_call_id=invocation.tool_call_id,
                    messages=to_langchain_messages(messages),
                ),
            )
        else:
            logger.info(
                "tool_denied",
                tool=invocation.tool_name,
                tool_call_id=invocation.tool_call_id,
            )
            result = DENIED_RESULT

        self.sink.emit(ToolResultEvent(tool_call_id=invocation.tool_call_id, result=result))
        return part.model_copy(
            update={"tool_invocation": invocation.model_copy(update={"result": result})}
        )
