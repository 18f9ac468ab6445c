"""
Built-in tools, published under the `reporter__` namespace
"""

from typing import Optional

from reporter.computer.session import ComputerSessionGovernor
from reporter.config import ComputerConfig
from reporter.core.tools import ToolSpec
from reporter.schedule.crontab import CrontabInstaller
from reporter.schedule.store import ScheduleStore
from reporter.todo import JsonTodoStore, TodoStore
from reporter.tools.bash_tool import BASH_TOOL_SPEC, bash_handler
from reporter.tools.computer_tool import create_computer_tool
from reporter.tools.file_tools import (
    LIST_FILES_TOOL_SPEC,
    READ_FILE_TOOL_SPEC,
    WRITE_FILE_TOOL_SPEC,
    list_files_handler,
    read_file_handler,
    write_file_handler,
)
from reporter.tools.schedule_tools import create_schedule_tools
from reporter.tools.search_tools import GLOB_TOOL_SPEC, GREP_TOOL_SPEC, glob_handler, grep_handler
from reporter.tools.todo_tools import create_todo_tools
from reporter.tools.webfetch_tool import WEBFETCH_TOOL_SPEC, webfetch_handler

_STATIC_TOOLS = [
    (READ_FILE_TOOL_SPEC, read_file_handler),
    (WRITE_FILE_TOOL_SPEC, write_file_handler),
    (LIST_FILES_TOOL_SPEC, list_files_handler),
    (BASH_TOOL_SPEC, bash_handler),
    (GLOB_TOOL_SPEC, glob_handler),
    (GREP_TOOL_SPEC, grep_handler),
    (WEBFETCH_TOOL_SPEC, webfetch_handler),
]


def create_builtin_tools(
    schedule_store: ScheduleStore,
    installer: CrontabInstaller,
    governor: Optional[ComputerSessionGovernor] = None,
    computer_config: Optional[ComputerConfig] = None,
    todo_store: Optional[TodoStore] = None,
) -> list[ToolSpec]:
    """Create built-in tool specifications; the computer tool only when enabled"""
    tools = [
        ToolSpec(
            name=spec["name"],
            description=spec["description"],
            parameters=spec["parameters"],
            handler=handler,
        )
        for spec, handler in _STATIC_TOOLS
    ]
    tools.extend(create_schedule_tools(schedule_store, installer))
    tools.extend(create_todo_tools(todo_store or JsonTodoStore()))
    if governor is not None and computer_config is not None and computer_config.enabled:
        tools.append(create_computer_tool(governor, computer_config))
    return tools


__all__ = ["create_builtin_tools"]
