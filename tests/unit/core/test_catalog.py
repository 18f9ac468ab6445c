"""
Unit tests for qualified tool names and the merged catalog.
"""

import pytest

from reporter.core.catalog import (
    GITHUB_TOOL_ALLOWLIST,
    ToolCatalog,
    filter_tools,
    qualify,
    split_name,
)
from reporter.core.messages import ToolDescriptor
from reporter.errors import InvalidToolName, ToolRoutingError


class TestSplitName:
    """Test splitting `server__tool` names."""

    def test_splits_on_first_separator(self):
        assert split_name("github__search_issues") == ("github", "search_issues")

    def test_tool_name_may_contain_separator(self):
        """Only the first `__` separates the server from the tool."""
        assert split_name("custom__do__thing") == ("custom", "do__thing")

    def test_round_trips_qualify(self):
        assert split_name(qualify("jira", "get_issue")) == ("jira", "get_issue")

    @pytest.mark.parametrize("name", ["nosep", "__tool", "server__", ""])
    def test_rejects_malformed_names(self, name):
        with pytest.raises(InvalidToolName):
            split_name(name)

    def test_invalid_name_is_a_routing_error(self):
        with pytest.raises(ToolRoutingError):
            split_name("plain")


class TestFilterTools:
    """Test report allowlists for built-in servers."""

    def test_github_tools_outside_allowlist_are_dropped(self):
        tools = [
            ToolDescriptor(name="github__search_issues"),
            ToolDescriptor(name="github__delete_repository"),
        ]

        kept = [t.name for t in filter_tools(tools)]

        assert kept == ["github__search_issues"]
        assert "github__search_issues" in GITHUB_TOOL_ALLOWLIST

    def test_slack_tools_are_filtered(self):
        tools = [
            ToolDescriptor(name="slack__slack_post_message"),
            ToolDescriptor(name="slack__slack_get_channel_history"),
        ]

        assert [t.name for t in filter_tools(tools)] == ["slack__slack_get_channel_history"]

    def test_other_servers_are_unfiltered(self):
        tools = [ToolDescriptor(name="jira__create_issue"), ToolDescriptor(name="notes__write")]

        assert filter_tools(tools) == tools

    def test_custom_allowlists(self):
        tools = [ToolDescriptor(name="a__x"), ToolDescriptor(name="a__y")]

        kept = filter_tools(tools, {"a": frozenset({"a__y"})})

        assert [t.name for t in kept] == ["a__y"]


class TestToolCatalog:
    """Test the ordered, duplicate-free catalog."""

    def test_preserves_insertion_order(self):
        catalog = ToolCatalog([ToolDescriptor(name="b__one"), ToolDescriptor(name="a__two")])

        assert catalog.names() == ["b__one", "a__two"]
        assert catalog.servers() == ["b", "a"]
        assert len(catalog) == 2

    def test_rejects_duplicates(self):
        catalog = ToolCatalog([ToolDescriptor(name="a__x")])

        with pytest.raises(ValueError, match="Duplicate"):
            catalog.add(ToolDescriptor(name="a__x"))

    def test_lookup(self):
        tool = ToolDescriptor(name="a__x", description="desc")
        catalog = ToolCatalog()
        catalog.extend([tool])

        assert "a__x" in catalog
        assert catalog.get("a__x") == tool
        assert catalog.get("a__missing") is None
        assert list(catalog) == [tool]
