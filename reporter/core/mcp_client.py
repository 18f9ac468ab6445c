"""
MCP (Model Context Protocol) connection manager

Owns one connection per configured tool-server (stdio process or streamable
HTTP, optionally OAuth-gated), publishes each server's tools under
`<server>__<tool>` and forwards calls to the owning connection.
"""

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Optional

from lmnr import observe
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import EmbeddedResource, ImageContent, TextContent

from reporter.auth.oauth import InteractiveAuthorizer, build_oauth_provider
from reporter.auth.tokens import FileTokenStore, TokenStore
from reporter.config import ServerSpec
from reporter.core.catalog import ToolCatalog, filter_tools, qualify, split_name
from reporter.core.messages import ToolDescriptor
from reporter.errors import UnknownServer

logger = logging.getLogger(__name__)

ISSUE_SEARCH_SERVER = "github"
ISSUE_SEARCH_TOOL = "search_issues"


def convert_mcp_content_to_string(content: list) -> str:
    """
    Flatten MCP content blocks into text for the LLM.

    Text blocks are kept verbatim, images and binary resources are replaced
    by a short placeholder naming their MIME type.
    """
    if not content:
        return ""

    parts = []
    for item in content:
        if isinstance(item, TextContent):
            parts.append(item.text)
        elif isinstance(item, ImageContent):
            parts.append(f"[Image: {item.mimeType}]")
        elif isinstance(item, EmbeddedResource):
            resource = item.resource
            if getattr(resource, "text", None):
                parts.append(resource.text)
            elif getattr(resource, "blob", None):
                parts.append(f"[Binary data: {getattr(resource, 'mimeType', None) or 'unknown'}]")
            else:
                parts.append(f"[Resource: {getattr(resource, 'uri', 'unknown')}]")
        else:
            parts.append(str(item))

    return "\n".join(parts)


def scope_issue_search(args: dict[str, Any], orgs: list[str]) -> dict[str, Any]:
    """Prefix an unscoped issue-search query with `org:` qualifiers"""
    query = args.get("q")
    if not orgs or not isinstance(query, str) or not query or "org:" in query:
        return args
    org_filter = " ".join(f"org:{org}" for org in orgs)
    return {**args, "q": f"{org_filter} {query}"}


@dataclass
class ServerConnection:
    """A live session with one tool-server"""

    name: str
    transport: str
    session: ClientSession
    exit_stack: AsyncExitStack
    tools: list[ToolDescriptor] = field(default_factory=list)


class MCPClientManager:
    """
    Manages connections to MCP servers and provides tool access.

    Connections are opened and closed from the same task; the manager itself
    holds no lock, so calls to different servers run concurrently.
    """

    def __init__(
        self,
        token_store: Optional[TokenStore] = None,
        github_orgs: Optional[list[str]] = None,
    ):
        self.token_store = token_store or FileTokenStore()
        self.github_orgs = list(github_orgs or [])
        self.connections: dict[str, ServerConnection] = {}
        self.failures: dict[str, str] = {}

    async def __aenter__(self) -> "MCPClientManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    async def connect(self, specs: list[ServerSpec]) -> list[str]:
        """
        Connect to every server in `specs`.

        A server that fails to spawn, handshake or authorize is logged and
        skipped; the rest of the batch still connects.

        Returns:
            Names of the servers that connected
        """
        connected = []
        for spec in specs:
            if spec.name in self.connections:
                logger.warning(f"Already connected to {spec.name}, skipping")
                continue
            try:
                connection = await self._open_connection(spec)
            except Exception as e:
                logger.error(f"Failed to connect to {spec.name}: {e}")
                self.failures[spec.name] = str(e)
                continue
            self.connections[spec.name] = connection
            connected.append(spec.name)
            logger.info(f"Connected to {spec.name} ({len(connection.tools)} tools)")
        return connected

    async def _open_connection(self, spec: ServerSpec) -> ServerConnection:
        stack = AsyncExitStack()
        try:
            if spec.transport == "stdio":
                params = StdioServerParameters(
                    command=spec.command, args=spec.args, env=spec.env or None
                )
                read, write = await stack.enter_async_context(stdio_client(params))
            else:
                auth = None
                if spec.auth == "oauth":
                    auth = build_oauth_provider(
                        spec.name,
                        spec.url,
                        self.token_store,
                        InteractiveAuthorizer(spec.name),
                    )
                read, write, _ = await stack.enter_async_context(
                    streamablehttp_client(spec.url, headers=spec.headers or None, auth=auth)
                )
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
            response = await session.list_tools()
        except BaseException:
            await _close_quietly(spec.name, stack)
            raise

        tools = [
            ToolDescriptor(
                name=qualify(spec.name, tool.name),
                description=f"[{spec.name}] {tool.description or ''}".rstrip(),
                input_schema=tool.inputSchema or {"type": "object", "properties": {}},
            )
            for tool in response.tools
        ]
        return ServerConnection(
            name=spec.name,
            transport=spec.transport,
            session=session,
            exit_stack=stack,
            tools=tools,
        )

    def catalog(self) -> ToolCatalog:
        """Merged catalog of every connected server, report allowlists applied"""
        tools = []
        for connection in self.connections.values():
            tools.extend(connection.tools)
        return ToolCatalog(filter_tools(tools))

    @observe(name="mcp_invoke")
    async def invoke(self, qualified_name: str, arguments: dict[str, Any]) -> tuple[str, bool]:
        """
        Call a namespaced tool on its server.

        Returns:
            Tuple of (output_string, success_bool)

        Raises:
            InvalidToolName: if the name has no namespace separator
            UnknownServer: if no connected server owns the prefix
        """
        server, tool = split_name(qualified_name)
        connection = self.connections.get(server)
        if connection is None:
            raise UnknownServer(f"No server connected for: {server}")

        if server == ISSUE_SEARCH_SERVER and tool == ISSUE_SEARCH_TOOL:
            arguments = scope_issue_search(arguments, self.github_orgs)

        logger.debug(f"Calling {server}/{tool} with {arguments}")
        result = await connection.session.call_tool(tool, arguments)
        return convert_mcp_content_to_string(result.content), not result.isError

    async def disconnect(self) -> None:
        """Close every connection; one failing close never blocks the others"""
        connections = list(self.connections.values())
        self.connections.clear()
        for connection in reversed(connections):
            await _close_quietly(connection.name, connection.exit_stack)


async def _close_quietly(name: str, stack: AsyncExitStack) -> None:
    try:
        await stack.aclose()
    except Exception as e:
        logger.warning(f"Error closing connection to {name}: {e}")
