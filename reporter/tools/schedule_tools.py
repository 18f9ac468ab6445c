"""
Schedule management tools: list, add, remove and update report schedules
"""

from datetime import datetime
from typing import Any

from reporter.core.tools import ToolCallContext, ToolSpec
from reporter.schedule.crontab import (
    CrontabInstaller,
    format_time_until,
    next_run,
    parse_time_expression,
    validate_cron,
)
from reporter.schedule.store import Schedule, ScheduleStore, is_valid_name

DEFAULT_CRON = ("0 9 * * *", "Daily at 9am")


def _text(arguments: dict[str, Any], key: str) -> str:
    value = arguments.get(key)
    return value.strip() if isinstance(value, str) else ""


def resolve_cron(arguments: dict[str, Any]) -> tuple[str, str]:
    """Pick (cron, label) from `cron`, then `time_expression`, then the default"""
    cron = _text(arguments, "cron")
    if cron:
        cron = validate_cron(cron)
        return cron, _text(arguments, "frequency_label") or f"Cron: {cron}"
    expression = _text(arguments, "time_expression")
    if expression:
        return parse_time_expression(expression)
    return DEFAULT_CRON


def create_schedule_tools(store: ScheduleStore, installer: CrontabInstaller) -> list[ToolSpec]:
    async def list_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
        schedules = store.load()
        if not schedules:
            return "No schedules configured.", True
        now = datetime.now()
        lines = []
        for s in schedules:
            lines.append(f"- {s.name}: {s.frequency_label} (cron: {s.cron})")
            upcoming = next_run(s.cron, now)
            if upcoming is not None:
                lines.append(f"  next run: {upcoming:%Y-%m-%d %H:%M} (in {format_time_until(upcoming, now)})")
            if s.prompt:
                lines.append(f"  prompt: {s.prompt}")
        return "\n".join(lines), True

    async def add_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
        name = _text(arguments, "name")
        if not name:
            return "Error: missing required field 'name'.", False
        if not is_valid_name(name):
            return "Error: invalid name. Use lowercase letters, numbers, and hyphens.", False
        if store.get(name):
            return f'Error: schedule "{name}" already exists.', False
        try:
            cron, label = resolve_cron(arguments)
        except ValueError as e:
            return f"Error: {str(e)}", False

        prompt = arguments.get("prompt") if isinstance(arguments.get("prompt"), str) else ""
        store.add(Schedule(name=name, prompt=prompt, cron=cron, frequency_label=label))
        if not await installer.install(name, cron):
            return f'Schedule "{name}" added ({label}), but failed to install crontab entry.', False
        return f'Schedule "{name}" added ({label}) and crontab entry installed.', True

    async def remove_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
        name = _text(arguments, "name")
        if not name:
            return "Error: missing required field 'name'.", False
        if not store.remove(name):
            return f'Error: schedule "{name}" not found.', False
        await installer.remove(name)
        return f'Schedule "{name}" removed.', True

    async def update_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
        name = _text(arguments, "name")
        if not name:
            return "Error: missing required field 'name'.", False
        existing = store.get(name)
        if existing is None:
            return f'Error: schedule "{name}" not found.', False

        new_name = _text(arguments, "new_name") or name
        if not is_valid_name(new_name):
            return "Error: invalid new_name. Use lowercase letters, numbers, and hyphens.", False
        if new_name != name and store.get(new_name):
            return f'Error: schedule "{new_name}" already exists.', False

        if _text(arguments, "cron") or _text(arguments, "time_expression"):
            try:
                cron, label = resolve_cron(arguments)
            except ValueError as e:
                return f"Error: {str(e)}", False
        else:
            cron, label = existing.cron, existing.frequency_label
        prompt = arguments["prompt"] if isinstance(arguments.get("prompt"), str) else existing.prompt

        store.replace(
            name,
            Schedule(
                name=new_name,
                prompt=prompt,
                cron=cron,
                frequency_label=label,
                created_at=existing.created_at,
            ),
        )
        await installer.remove(name)
        if not await installer.install(new_name, cron):
            return (
                f'Schedule "{name}" updated to "{new_name}" ({label}), '
                "but failed to install crontab entry."
            ), False
        return f'Schedule "{name}" updated to "{new_name}" ({label}).', True

    handlers = {
        "report_list_schedules": list_handler,
        "report_add_schedule": add_handler,
        "report_remove_schedule": remove_handler,
        "report_update_schedule": update_handler,
    }
    return [
        ToolSpec(
            name=spec["name"],
            description=spec["description"],
            parameters=spec["parameters"],
            handler=handlers[spec["name"]],
        )
        for spec in SCHEDULE_TOOL_SPECS
    ]


_TIMING_PROPERTIES = {
    "prompt": {"type": "string", "description": "Custom report prompt (optional)"},
    "time_expression": {"type": "string", "description": "Examples: 9am, */6h, */15m"},
    "cron": {"type": "string", "description": "Raw cron expression (optional)"},
    "frequency_label": {"type": "string", "description": "Optional display label when using cron"},
}

SCHEDULE_TOOL_SPECS = [
    {
        "name": "report_list_schedules",
        "description": "List report schedules.",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "report_add_schedule",
        "description": (
            "Create a report schedule. Provide name and either time_expression "
            "(e.g. 9am, */6h, */15m) or cron."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Schedule name (lowercase, numbers, hyphens)"},
                **_TIMING_PROPERTIES,
            },
            "required": ["name"],
        },
    },
    {
        "name": "report_remove_schedule",
        "description": "Remove a report schedule by name and uninstall its crontab entry.",
        "parameters": {
            "type": "object",
            "properties": {"name": {"type": "string", "description": "Schedule name"}},
            "required": ["name"],
        },
    },
    {
        "name": "report_update_schedule",
        "description": (
            "Update an existing report schedule. You can change name, prompt, "
            "time_expression, cron, or frequency_label."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Existing schedule name"},
                "new_name": {"type": "string", "description": "New schedule name (optional)"},
                **_TIMING_PROPERTIES,
            },
            "required": ["name"],
        },
    },
]
