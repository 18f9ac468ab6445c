"""
Qualified tool names and the merged catalog.

Every tool published to the LLM is named `<server>__<tool>`. The server part
never contains the separator, so splitting on the first occurrence recovers
the owning connection even when the tool's own name contains `__`.
"""

from reporter.core.messages import ToolDescriptor
from reporter.errors import InvalidToolName

NAMESPACE_SEPARATOR = "__"

# Read-only subsets published for report generation
GITHUB_TOOL_ALLOWLIST = frozenset(
    {
        "github__get_the_authenticated_user",
        "github__search_issues",
        "github__get_pull_request",
        "github__list_commits",
        "github__get_issue",
        "github__list_pull_requests_for_repo",
    }
)

SLACK_TOOL_ALLOWLIST = frozenset(
    {
        "slack__slack_list_channels",
        "slack__slack_get_channel_history",
        "slack__slack_get_thread_replies",
        "slack__slack_get_users",
        "slack__slack_get_user_profile",
        "slack__slack_search_messages",
    }
)

SERVER_ALLOWLISTS = {
    "github": GITHUB_TOOL_ALLOWLIST,
    "slack": SLACK_TOOL_ALLOWLIST,
}


def qualify(server: str, tool: str) -> str:
    return f"{server}{NAMESPACE_SEPARATOR}{tool}"


def split_name(qualified_name: str) -> tuple[str, str]:
    """Split `server__tool` into its parts, raising InvalidToolName otherwise"""
    server, sep, tool = qualified_name.partition(NAMESPACE_SEPARATOR)
    if not sep or not server or not tool:
        raise InvalidToolName(f"Invalid tool name: {qualified_name}")
    return server, tool


def filter_tools(
    tools: list[ToolDescriptor],
    allowlists: dict[str, frozenset[str]] = SERVER_ALLOWLISTS,
) -> list[ToolDescriptor]:
    """Drop tools of allowlisted servers that are not on their allowlist"""
    kept = []
    for tool in tools:
        server = tool.name.partition(NAMESPACE_SEPARATOR)[0]
        allowed = allowlists.get(server)
        if allowed is None or tool.name in allowed:
            kept.append(tool)
    return kept


class ToolCatalog:
    """Ordered, duplicate-free collection of ToolDescriptors"""

    def __init__(self, tools: list[ToolDescriptor] | None = None):
        self._tools: dict[str, ToolDescriptor] = {}
        for tool in tools or []:
            self.add(tool)

    def add(self, tool: ToolDescriptor) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Duplicate tool name in catalog: {tool.name}")
        self._tools[tool.name] = tool

    def extend(self, tools: list[ToolDescriptor]) -> None:
        for tool in tools:
            self.add(tool)

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def servers(self) -> list[str]:
        seen: dict[str, None] = {}
        for name in self._tools:
            seen.setdefault(name.partition(NAMESPACE_SEPARATOR)[0], None)
        return list(seen)

    def tools(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self):
        return iter(self._tools.values())
