"""
Computer tool: hands an interactive browser task to the session governor
"""

import json
from typing import Any

from reporter.computer.session import ComputerSessionGovernor
from reporter.computer.types import ComputerErrorCode, ComputerSessionEvent, ComputerTaskInput
from reporter.config import ComputerConfig
from reporter.core.events import Event
from reporter.core.tools import ToolCallContext, ToolSpec


def _error_result(code: ComputerErrorCode, message: str) -> tuple[str, bool]:
    payload = {
        "ok": False,
        "summary": "Computer task failed.",
        "actions": [],
        "artifacts": [],
        "visited_urls": [],
        "error_code": code.value,
        "error_message": message,
    }
    return json.dumps(payload, indent=2), False


def create_computer_tool(governor: ComputerSessionGovernor, config: ComputerConfig) -> ToolSpec:
    async def computer_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
        task = arguments.get("task")
        task = task.strip() if isinstance(task, str) else ""
        if not task:
            return _error_result(ComputerErrorCode.INVALID_INPUT, "Input field 'task' is required.")
        if not config.enabled:
            return _error_result(ComputerErrorCode.DISABLED, "Computer tool is disabled in config.")

        start_url = arguments.get("start_url")
        start_url = start_url.strip() if isinstance(start_url, str) and start_url.strip() else None
        requested = arguments.get("max_steps")
        if not isinstance(requested, (int, float)) or isinstance(requested, bool) or requested <= 0:
            requested = config.max_steps
        max_steps = min(int(requested), config.max_steps)

        async def on_event(event: ComputerSessionEvent) -> None:
            await context.sink.emit(
                Event(event_type="computer_event", data=event.model_dump(mode="json", exclude_none=True))
            )

        result = await governor.run(
            ComputerTaskInput(
                task=task,
                start_url=start_url,
                max_steps=max(1, max_steps),
                max_duration_sec=config.max_duration_sec,
            ),
            cancel_event=context.cancel_event,
            on_event=on_event,
        )
        return result.model_dump_json(indent=2), result.ok

    return ToolSpec(
        name=COMPUTER_TOOL_SPEC["name"],
        description=COMPUTER_TOOL_SPEC["description"],
        parameters=COMPUTER_TOOL_SPEC["parameters"],
        handler=computer_handler,
    )


COMPUTER_TOOL_SPEC = {
    "name": "computer",
    "description": (
        "Run the computer-use subagent for interactive browser tasks (click/type/navigate). "
        "Use this for setup flows and pages that require UI interaction."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "task": {"type": "string", "description": "What the computer subagent should achieve."},
            "start_url": {
                "type": "string",
                "description": "Optional URL where the browser session should begin.",
            },
            "max_steps": {
                "type": "integer",
                "description": "Optional maximum steps for this run (capped by config).",
            },
        },
        "required": ["task"],
    },
}
