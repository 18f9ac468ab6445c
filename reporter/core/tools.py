"""
Tool system for the assistant
Provides ToolSpec and ToolRouter for dispatching to built-in and MCP tools
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from lmnr import observe

from reporter.core.catalog import NAMESPACE_SEPARATOR, ToolCatalog, split_name
from reporter.core.events import EventSink, NullEventSink
from reporter.core.messages import ToolDescriptor
from reporter.errors import UnknownServer, UnknownTool

logger = logging.getLogger(__name__)

BUILTIN_NAMESPACE = "reporter"


@dataclass
class ToolCallContext:
    """What a built-in handler may observe about the call it serves"""

    call_id: str = ""
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    sink: EventSink = field(default_factory=NullEventSink)


ToolHandler = Callable[[dict[str, Any], ToolCallContext], Awaitable[tuple[str, bool]]]


@dataclass
class ToolSpec:
    """Tool specification for LLM"""

    name: str
    description: str
    parameters: dict[str, Any]
    handler: Optional[ToolHandler] = None

    @property
    def qualified_name(self) -> str:
        return f"{BUILTIN_NAMESPACE}{NAMESPACE_SEPARATOR}{self.name}"

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.qualified_name,
            description=self.description,
            input_schema=self.parameters,
        )


class ToolRouter:
    """
    Routes tool calls to appropriate handlers.

    Names in the `reporter__` namespace go to the built-in table, every other
    name is forwarded to the MCP connection manager.
    """

    def __init__(self, mcp_manager=None, builtin_tools: Optional[list[ToolSpec]] = None):
        self.mcp_manager = mcp_manager
        self.tools: dict[str, ToolSpec] = {}
        for tool in builtin_tools or []:
            self.register_tool(tool)

    def register_tool(self, tool: ToolSpec) -> None:
        self.tools[tool.qualified_name] = tool

    def catalog(self) -> ToolCatalog:
        """Merged catalog: built-ins first, then every connected server's tools"""
        catalog = ToolCatalog([tool.descriptor() for tool in self.tools.values()])
        if self.mcp_manager is not None:
            for tool in self.mcp_manager.catalog():
                if tool.name in catalog:
                    logger.warning(f"Skipping {tool.name}: shadowed by a built-in tool")
                    continue
                catalog.add(tool)
        return catalog

    @observe(name="call_tool")
    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: Optional[ToolCallContext] = None,
    ) -> tuple[str, bool]:
        """
        Call a tool and return (output_string, success_bool).

        Raises:
            InvalidToolName, UnknownServer, UnknownTool: routing failures,
                left to the caller to turn into an error result
        """
        server, _ = split_name(tool_name)
        if server == BUILTIN_NAMESPACE:
            tool = self.tools.get(tool_name)
            if tool is None or tool.handler is None:
                raise UnknownTool(f"Unknown built-in tool: {tool_name}")
            return await tool.handler(arguments, context or ToolCallContext())

        if self.mcp_manager is None:
            raise UnknownServer(f"No server connected for: {server}")
        return await self.mcp_manager.invoke(tool_name, arguments)
