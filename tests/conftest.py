"""
Shared pytest fixtures: a scripted LLM provider, fake tool-server
connections and in-memory stores.
"""

from contextlib import AsyncExitStack
from typing import Any, Awaitable, Callable, Union
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp.types import CallToolResult, TextContent

from reporter.auth.tokens import InMemoryTokenStore
from reporter.core.catalog import qualify
from reporter.core.mcp_client import ServerConnection
from reporter.core.messages import Message, ProviderResponse, ToolCall, ToolDescriptor
from reporter.schedule.store import InMemoryScheduleStore

Step = Union[ProviderResponse, Exception, Callable[..., Awaitable[ProviderResponse]]]


class FakeProvider:
    """
    Replays scripted responses.

    A step is a ProviderResponse (its text is streamed as one delta), an
    exception to raise, or an async callable `step(on_text)` for streams that
    need to block or emit several deltas.
    """

    model = "fake/model"

    def __init__(self, steps: list[Step] | None = None, browsing: bool = False, runner=None):
        self.steps = list(steps or [])
        self.histories: list[list[Message]] = []
        self.tool_names: list[list[str]] = []
        self.browsing = browsing
        self.runner = runner

    async def stream_chat(self, system_prompt, history, tools, on_text=None) -> ProviderResponse:
        self.histories.append(list(history))
        self.tool_names.append([t.name for t in tools])
        if not self.steps:
            return ProviderResponse(text="done")
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return await step(on_text)
        if step.text and on_text is not None:
            await on_text(step.text)
        return step

    def has_browsing_capability(self) -> bool:
        return self.browsing

    async def run_browsing_task(self, task, cancel_event):
        return await self.runner(task, cancel_event)


def text_response(text: str) -> ProviderResponse:
    return ProviderResponse(text=text, stop_reason="end_turn")


def tool_response(*calls: tuple[str, str, dict[str, Any]], text: str = "") -> ProviderResponse:
    return ProviderResponse(
        text=text,
        tool_calls=[ToolCall(id=call_id, name=name, input=args) for call_id, name, args in calls],
        stop_reason="tool_use",
    )


def make_connection(
    name: str,
    tool_names: list[str],
    output: str = "ok",
    is_error: bool = False,
) -> ServerConnection:
    """A ServerConnection whose session answers every call with `output`"""
    session = MagicMock()
    session.call_tool = AsyncMock(
        return_value=CallToolResult(content=[TextContent(type="text", text=output)], isError=is_error)
    )
    return ServerConnection(
        name=name,
        transport="stdio",
        session=session,
        exit_stack=AsyncExitStack(),
        tools=[
            ToolDescriptor(name=qualify(name, tool), description=f"[{name}] {tool}")
            for tool in tool_names
        ],
    )


class FakeInstaller:
    """Records crontab changes instead of running `crontab`"""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.installed: dict[str, str] = {}
        self.removed: list[str] = []

    async def install(self, name: str, cron: str) -> bool:
        if self.succeed:
            self.installed[name] = cron
        return self.succeed

    async def remove(self, name: str) -> bool:
        self.removed.append(name)
        self.installed.pop(name, None)
        return True


@pytest.fixture
def token_store():
    return InMemoryTokenStore()


@pytest.fixture
def schedule_store():
    return InMemoryScheduleStore()


@pytest.fixture
def installer():
    return FakeInstaller()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Point the file tools' workspace at a temp directory"""
    root = tmp_path / "reporter"
    root.mkdir()
    monkeypatch.setattr("reporter.tools.file_tools.WORKSPACE_DIR", root)
    return root
