"""Progress events and the sinks that carry them to a live client.

Every event renders as a tagged envelope ``{"type": ..., "data": ...}`` so a
consumer can tell research annotations apart from generated text tokens.
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class StatusEvent:
    title: str

    def to_annotation(self) -> dict[str, Any]:
        return {"type": "status", "data": {"title": self.title}}


@dataclass(frozen=True)
class SourceEvent:
    title: str
    url: str

    def to_annotation(self) -> dict[str, Any]:
        return {"type": "source", "data": {"title": self.title, "url": self.url}}


@dataclass(frozen=True)
class TextDelta:
    """A chunk of generated text on the chat path."""

    text: str

    def to_annotation(self) -> dict[str, Any]:
        return {"type": "text", "data": {"text": self.text}}


@dataclass(frozen=True)
class ToolResultEvent:
    """A tool result produced outside the model loop (e.g. after confirmation)."""

    tool_call_id: str
    result: Any

    def to_annotation(self) -> dict[str, Any]:
        return {
            "type": "tool_result",
            "data": {"toolCallId": self.tool_call_id, "result": self.result},
        }


ProgressEvent = StatusEvent | SourceEvent | TextDelta | ToolResultEvent


@runtime_checkable
class ProgressSink(Protocol):
    """Receives progress events. Emission never blocks and is never read back."""

    def emit(self, event: ProgressEvent) -> None: ...


class NullProgressSink:
    def emit(self, event: ProgressEvent) -> None:
        pass


@dataclass
class CollectingProgressSink:
    """Keeps every emitted event in memory, in emission order."""

    events: list[ProgressEvent] = field(default_factory=list)

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def statuses(self) -> list[str]:
        return [e.title for e in self.events if isinstance(e, StatusEvent)]

    @property
    def sources(self) -> list[SourceEvent]:
        return [e for e in self.events if isinstance(e, SourceEvent)]


_CLOSED = object()


class QueueProgressSink:
    """Buffers events on an asyncio queue for a streaming transport.

    The producer calls ``close()`` when done; ``stream()`` then drains the
    remaining events and stops.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def emit(self, event: ProgressEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def stream(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
