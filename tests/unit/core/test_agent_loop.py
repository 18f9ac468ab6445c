"""
Unit tests for the submission loop.
"""

import asyncio

from conftest import FakeProvider, text_response

from reporter.core.agent_loop import (
    Operation,
    OpType,
    Submission,
    process_submission,
    submission_loop,
)
from reporter.core.events import CollectingEventSink, QueueEventSink
from reporter.core.session import ChatSession
from reporter.core.tools import ToolRouter


def user_input(sub_id: str, text: str) -> Submission:
    return Submission(id=sub_id, operation=Operation(op_type=OpType.USER_INPUT, data={"text": text}))


def op(sub_id: str, op_type: OpType) -> Submission:
    return Submission(id=sub_id, operation=Operation(op_type=op_type))


class TestProcessSubmission:
    """Test handling of single operations."""

    async def test_user_input_runs_turn(self):
        session = ChatSession(FakeProvider([text_response("hello back")]), ToolRouter())
        sink = CollectingEventSink()

        keep_running = await process_submission(session, user_input("s1", "hello"), sink)

        assert keep_running is True
        assert sink.events[-1].event_type == "turn_complete"
        assert sink.events[-1].data == {"history_size": 2}

    async def test_clear(self):
        session = ChatSession(FakeProvider([text_response("hi")]), ToolRouter())
        await session.send("hello")
        sink = CollectingEventSink()

        await process_submission(session, op("s2", OpType.CLEAR), sink)

        assert session.history == []
        assert [e.event_type for e in sink.events] == ["cleared"]

    async def test_shutdown(self):
        session = ChatSession(FakeProvider(), ToolRouter())

        assert await process_submission(session, op("s3", OpType.SHUTDOWN), CollectingEventSink()) is False


class TestSubmissionLoop:
    """Test the queue consumer."""

    async def test_processes_in_order_until_shutdown(self):
        session = ChatSession(
            FakeProvider([text_response("first"), text_response("second")]), ToolRouter()
        )
        queue: asyncio.Queue = asyncio.Queue()
        sink = CollectingEventSink()
        for submission in (
            user_input("s1", "one"),
            user_input("s2", "two"),
            op("s3", OpType.SHUTDOWN),
        ):
            queue.put_nowait(submission)

        await submission_loop(queue, session, sink)

        types = [e.event_type for e in sink.events]
        assert types[0] == "ready"
        assert types[-1] == "shutdown"
        assert types.count("turn_complete") == 2
        assert [e.data["text"] for e in sink.of_type("complete")] == ["first", "second"]

    async def test_failed_turn_does_not_stop_the_loop(self):
        session = ChatSession(
            FakeProvider([RuntimeError("rate limited"), text_response("ok")]), ToolRouter()
        )
        queue: asyncio.Queue = asyncio.Queue()
        sink = QueueEventSink()
        for submission in (user_input("s1", "a"), user_input("s2", "b"), op("s3", OpType.SHUTDOWN)):
            queue.put_nowait(submission)

        await submission_loop(queue, session, sink)

        events = []
        while not sink.queue.empty():
            events.append(sink.queue.get_nowait())
        types = [e.event_type for e in events]
        assert "error" in types
        assert types.count("turn_complete") == 2
        assert types[-1] == "shutdown"
