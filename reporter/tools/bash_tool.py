"""
Shell tool: each call runs in a fresh `bash -c`
"""

from typing import Any

from reporter.core.tools import ToolCallContext
from reporter.tools.process import run_process, truncate

DEFAULT_TIMEOUT_MS = 120_000
MAX_TIMEOUT_MS = 600_000


async def bash_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
    """Execute bash command"""
    command = arguments.get("command", "")
    if not command:
        return "Error: No command provided", False
    timeout_ms = min(MAX_TIMEOUT_MS, max(1000, int(arguments.get("timeout") or DEFAULT_TIMEOUT_MS)))

    try:
        result = await run_process(["bash", "-c", command], timeout_ms / 1000, context.cancel_event)
    except OSError as e:
        return f"Error: {str(e)}", False

    if result.stopped == "timeout":
        return f"Error: command timed out after {timeout_ms // 1000}s", False
    if result.stopped == "cancelled":
        return "Aborted", False

    output = result.stdout
    if result.stderr:
        output += ("\n" if output else "") + f"[stderr]\n{result.stderr}"
    if not output:
        output = "(no output)"
    if result.returncode != 0:
        output = f"[exit code: {result.returncode}]\n{output}"
    return truncate(output), result.returncode == 0


BASH_TOOL_SPEC = {
    "name": "bash",
    "description": (
        "Execute a shell command via bash. Returns stdout and stderr. "
        "Each invocation is a fresh shell: no state persists between calls. "
        "Never run destructive commands (rm -rf, drop tables, etc.) without explicit user request."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "The bash command to execute"},
            "timeout": {
                "type": "integer",
                "description": "Timeout in milliseconds (default: 120000, max: 600000)",
            },
            "description": {
                "type": "string",
                "description": "Brief description of what this command does",
            },
        },
        "required": ["command"],
    },
}
