"""
Unit tests for the multi-round chat turn: streaming, parallel tool dispatch,
cancellation and the round cap.
"""

import asyncio

import pytest
from conftest import FakeProvider, text_response, tool_response

from reporter.auth.tokens import InMemoryTokenStore
from reporter.core.events import CollectingEventSink
from reporter.core.mcp_client import MCPClientManager
from reporter.core.messages import ABORTED_MARKER, ABORTED_RESULT, Message
from reporter.core.session import MAX_TOOL_ROUNDS, ChatSession
from reporter.core.tools import ToolRouter, ToolSpec


def make_tool(name: str, handler) -> ToolSpec:
    return ToolSpec(
        name=name,
        description=f"{name} tool",
        parameters={"type": "object", "properties": {}},
        handler=handler,
    )


def make_session(steps, tools=None, max_rounds=20) -> tuple[ChatSession, FakeProvider]:
    provider = FakeProvider(steps)
    router = ToolRouter(
        mcp_manager=MCPClientManager(token_store=InMemoryTokenStore()),
        builtin_tools=tools or [],
    )
    return ChatSession(provider, router, max_rounds=max_rounds), provider


def assert_calls_paired(history: list[Message]) -> None:
    """Every assistant tool call is answered, in order, by the next message"""
    for i, message in enumerate(history):
        if message.role == "assistant" and message.tool_calls:
            assert i + 1 < len(history), "tool calls left unanswered"
            answer = history[i + 1]
            assert [r.tool_call_id for r in answer.results] == [c.id for c in message.tool_calls]


class TestPlainTurn:
    """Test a turn with no tool calls."""

    async def test_returns_text_and_records_history(self):
        session, _ = make_session([text_response("Here is your summary.")])
        sink = CollectingEventSink()

        text = await session.send("What did I do today?", sink)

        assert text == "Here is your summary."
        assert [m.role for m in session.history] == ["user", "assistant"]
        assert sink.text == "Here is your summary."
        complete = sink.of_type("complete")
        assert complete[0].data == {"text": "Here is your summary.", "aborted": False}

    async def test_catalog_is_passed_to_provider(self):
        async def noop(arguments, context):
            return "ok", True

        session, provider = make_session([text_response("hi")], tools=[make_tool("echo", noop)])

        await session.send("hello")

        assert provider.tool_names[0] == ["reporter__echo"]


class TestToolRounds:
    """Test tool dispatch between provider rounds."""

    async def test_results_follow_calls_in_order(self):
        seen = []

        async def echo(arguments, context):
            seen.append(arguments["n"])
            return f"echo {arguments['n']}", True

        session, provider = make_session(
            [
                tool_response(("c1", "reporter__echo", {"n": 1}), ("c2", "reporter__echo", {"n": 2})),
                text_response("All done."),
            ],
            tools=[make_tool("echo", echo)],
        )
        sink = CollectingEventSink()

        text = await session.send("go", sink)

        assert text == "All done."
        assert sorted(seen) == [1, 2]
        history = session.history
        assert [m.role for m in history] == ["user", "assistant", "user", "assistant"]
        assert [r.content for r in history[2].results] == ["echo 1", "echo 2"]
        assert_calls_paired(history)
        # second provider call sees the tool results
        assert provider.histories[1][-1].results[0].tool_call_id == "c1"
        assert sorted(e.data["id"] for e in sink.of_type("tool_end")) == ["c1", "c2"]
        assert len(sink.of_type("tool_start")) == 2

    async def test_tools_run_concurrently(self):
        first_started = asyncio.Event()

        async def waits_for_second(arguments, context):
            await asyncio.wait_for(first_started.wait(), timeout=2)
            return "a", True

        async def releases_first(arguments, context):
            first_started.set()
            return "b", True

        session, _ = make_session(
            [
                tool_response(("c1", "reporter__a", {}), ("c2", "reporter__b", {})),
                text_response("ok"),
            ],
            tools=[make_tool("a", waits_for_second), make_tool("b", releases_first)],
        )

        await session.send("go")

        assert [r.content for r in session.history[2].results] == ["a", "b"]

    async def test_routing_errors_become_error_results(self):
        session, _ = make_session(
            [
                tool_response(("c1", "unknownserver__x", {}), ("c2", "nosep", {})),
                text_response("Could not reach those tools."),
            ]
        )

        text = await session.send("go")

        results = session.history[2].results
        assert text == "Could not reach those tools."
        assert all(r.is_error for r in results)
        assert "No server connected for: unknownserver" in results[0].content
        assert "Invalid tool name" in results[1].content

    async def test_handler_exception_becomes_error_result(self):
        async def broken(arguments, context):
            raise RuntimeError("disk on fire")

        session, _ = make_session(
            [tool_response(("c1", "reporter__broken", {})), text_response("sorry")],
            tools=[make_tool("broken", broken)],
        )
        sink = CollectingEventSink()

        await session.send("go", sink)

        result = session.history[2].results[0]
        assert result.is_error
        assert result.content == "Error: disk on fire"
        assert sink.of_type("tool_end")[0].data["success"] is False

    async def test_round_cap_stops_the_turn(self):
        async def noop(arguments, context):
            return "ok", True

        steps = [tool_response((f"c{i}", "reporter__noop", {}), text=f"round {i}") for i in range(5)]
        session, provider = make_session(steps, tools=[make_tool("noop", noop)], max_rounds=3)
        sink = CollectingEventSink()

        text = await session.send("loop forever", sink)

        assert len(provider.histories) == 3
        assert text == "round 2"
        assert session.history[-1].results[0].tool_call_id == "c2"
        assert_calls_paired(session.history)
        assert sink.of_type("complete")[0].data["aborted"] is False

    async def test_default_cap_is_twenty_rounds(self):
        async def noop(arguments, context):
            return "ok", True

        steps = [tool_response((f"c{i}", "reporter__noop", {})) for i in range(25)]
        session, provider = make_session(steps, tools=[make_tool("noop", noop)], max_rounds=MAX_TOOL_ROUNDS)

        await session.send("keep going")

        assert MAX_TOOL_ROUNDS == 20
        assert len(provider.histories) == 20
        assert_calls_paired(session.history)


class TestCancellation:
    """Test interrupting a turn."""

    async def test_mid_stream_cancel_keeps_partial_text(self):
        streaming = asyncio.Event()

        async def slow_stream(on_text):
            await on_text("Partial sum")
            streaming.set()
            await asyncio.Event().wait()

        session, provider = make_session([slow_stream, text_response("next answer")])
        sink = CollectingEventSink()

        turn = asyncio.create_task(session.send("summarize", sink))
        await streaming.wait()
        session.interrupt()
        text = await turn

        assert text == "Partial sum" + ABORTED_MARKER
        assert session.history[-1].role == "assistant"
        assert session.history[-1].text == "Partial sum" + ABORTED_MARKER
        assert sink.of_type("complete")[0].data["aborted"] is True

        # the partial answer is visible to the next turn
        await session.send("continue")
        assert provider.histories[1][1].text == "Partial sum" + ABORTED_MARKER

    async def test_cancel_before_dispatch_aborts_every_call(self):
        calls = []

        async def counted(arguments, context):
            calls.append(arguments)
            return "ran", True

        session, _ = make_session([], tools=[make_tool("counted", counted)])

        async def cancel_then_call_tools(on_text):
            session.interrupt()
            return tool_response(
                ("c1", "reporter__counted", {}),
                ("c2", "reporter__counted", {}),
                ("c3", "reporter__counted", {}),
            )

        session.provider.steps = [cancel_then_call_tools]
        sink = CollectingEventSink()

        await session.send("go", sink)

        assert calls == []
        results = session.history[-1].results
        assert [r.content for r in results] == [ABORTED_RESULT] * 3
        assert all(r.is_error for r in results)
        assert_calls_paired(session.history)
        assert sink.of_type("tool_start") == []
        assert sink.of_type("complete")[0].data["aborted"] is True

    async def test_cancel_reaches_running_tool(self):
        running = asyncio.Event()

        async def waits_for_cancel(arguments, context):
            running.set()
            await context.cancel_event.wait()
            return "Aborted", False

        session, provider = make_session(
            [tool_response(("c1", "reporter__wait", {})), text_response("never")],
            tools=[make_tool("wait", waits_for_cancel)],
        )

        turn = asyncio.create_task(session.send("go"))
        await running.wait()
        session.interrupt()
        await turn

        assert session.history[-1].results[0].content == "Aborted"
        assert len(provider.histories) == 1

    async def test_interrupt_when_idle_is_harmless(self):
        session, _ = make_session([text_response("hi")])

        session.interrupt()

        assert await session.send("hello") == "hi"


class TestErrors:
    """Test provider failures."""

    async def test_stream_error_propagates(self):
        session, _ = make_session([RuntimeError("provider down"), text_response("recovered")])
        sink = CollectingEventSink()

        with pytest.raises(RuntimeError, match="provider down"):
            await session.send("hi", sink)

        assert sink.of_type("error")[0].data == {"error": "provider down"}
        assert not session.is_busy
        assert await session.send("again") == "recovered"


class TestSessionState:
    """Test lock and history management."""

    async def test_turns_do_not_overlap(self):
        release = asyncio.Event()

        async def blocked(on_text):
            await release.wait()
            return text_response("first")

        session, provider = make_session([blocked, text_response("second")])

        first = asyncio.create_task(session.send("one"))
        await asyncio.sleep(0)
        assert session.is_busy
        second = asyncio.create_task(session.send("two"))
        await asyncio.sleep(0)
        release.set()

        assert await first == "first"
        assert await second == "second"
        assert [m.text for m in session.history] == ["one", "first", "two", "second"]

    async def test_clear(self):
        session, _ = make_session([text_response("hi")])
        await session.send("hello")

        session.clear()

        assert session.history == []
