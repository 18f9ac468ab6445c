"""
Todo tools: read and replace the day's todo list
"""

import logging
from typing import Any

from reporter.core.tools import ToolCallContext, ToolSpec
from reporter.todo import TodoStore, open_count, parse_todos, resolve_date
from reporter.utils.terminal_display import format_todo_output

logger = logging.getLogger(__name__)


def create_todo_tools(store: TodoStore) -> list[ToolSpec]:
    async def read_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
        date = resolve_date(arguments.get("date"))
        return format_todo_output(date, store.load(date)), True

    async def write_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
        date = resolve_date(arguments.get("date"))
        try:
            todos = parse_todos(arguments.get("todos"))
        except ValueError as e:
            return f"Error: {e}. Re call the tool with the full list in the correct format.", False

        store.save(date, todos)
        saved = store.load(date)
        logger.debug(f"Saved {len(saved)} todos for {date}")
        return f"Todo list updated: {open_count(saved)} open\n\n" + format_todo_output(date, saved), True

    handlers = {"todo_read": read_handler, "todo_write": write_handler}
    return [
        ToolSpec(
            name=spec["name"],
            description=spec["description"],
            parameters=spec["parameters"],
            handler=handlers[spec["name"]],
        )
        for spec in TODO_TOOL_SPECS
    ]


_DATE_PROPERTY = {
    "date": {"type": "string", "description": "Day of the list as YYYY-MM-DD (default: today)"},
}

TODO_TOOL_SPECS = [
    {
        "name": "todo_read",
        "description": (
            "Read the todo list for a day. Use this before todo_write so untouched "
            "items and ids are preserved."
        ),
        "parameters": {"type": "object", "properties": {**_DATE_PROPERTY}},
    },
    {
        "name": "todo_write",
        "description": (
            "Replace the day's todo list with the provided full list. Keep untouched "
            "items from todo_read."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                **_DATE_PROPERTY,
                "todos": {
                    "type": "array",
                    "description": "Full updated todo list",
                    "items": {
                        "type": "object",
                        "properties": {
                            "id": {"type": "string", "description": "Stable identifier for the todo"},
                            "content": {"type": "string", "description": "What needs doing"},
                            "status": {
                                "type": "string",
                                "enum": ["pending", "in_progress", "completed", "cancelled"],
                            },
                            "priority": {"type": "string", "enum": ["high", "medium", "low"]},
                        },
                        "required": ["id", "content", "status", "priority"],
                    },
                },
            },
            "required": ["todos"],
        },
    },
]
