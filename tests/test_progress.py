"""Tests for progress events and sinks."""

import asyncio

import pytest

from src.deep_research.progress import (
    CollectingProgressSink,
    NullProgressSink,
    ProgressSink,
    QueueProgressSink,
    SourceEvent,
    StatusEvent,
    TextDelta,
    ToolResultEvent,
)


class TestAnnotations:
    def test_envelopes(self):
        assert StatusEvent("Searching").to_annotation() == {
            "type": "status",
            "data": {"title": "Searching"},
        }
        assert SourceEvent("EV", "https://ev").to_annotation() == {
            "type": "source",
            "data": {"title": "EV", "url": "https://ev"},
        }
        assert TextDelta("Hi").to_annotation() == {"type": "text", "data": {"text": "Hi"}}
        assert ToolResultEvent("call_1", "sunny").to_annotation() == {
            "type": "tool_result",
            "data": {"toolCallId": "call_1", "result": "sunny"},
        }


class TestSinks:
    def test_sinks_satisfy_protocol(self):
        for sink in (NullProgressSink(), CollectingProgressSink(), QueueProgressSink()):
            assert isinstance(sink, ProgressSink)

    def test_collecting_sink_keeps_order(self):
        sink = CollectingProgressSink()
        sink.emit(StatusEvent("one"))
        sink.emit(SourceEvent("EV", "https://ev"))
        sink.emit(StatusEvent("two"))

        assert sink.statuses == ["one", "two"]
        assert sink.sources == [SourceEvent("EV", "https://ev")]

    @pytest.mark.asyncio
    async def test_queue_sink_drains_until_closed(self):
        sink = QueueProgressSink()
        sink.emit(StatusEvent("one"))
        sink.emit(StatusEvent("two"))
        sink.close()
        sink.emit(StatusEvent("late"))

        events = [event async for event in sink.stream()]

        assert events == [StatusEvent("one"), StatusEvent("two")]

    @pytest.mark.asyncio
    async def test_queue_sink_streams_while_producing(self):
        sink = QueueProgressSink()

        async def produce():
            for i in range(3):
                sink.emit(StatusEvent(str(i)))
                await asyncio.sleep(0)
            sink.close()

        producer = asyncio.create_task(produce())
        titles = [event.title async for event in sink.stream()]
        await producer

        assert titles == ["0", "1", "2"]
