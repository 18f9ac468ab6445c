"""
Terminal rendering for chat events, built on rich
"""

import json

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from reporter.core.events import Event

YELLOW = "#FFD21E"
GREEN = "#98C379"
RED = "#E06C75"
CYAN = "#56B6C2"
DIM = "#5C6370"


def truncate_to_lines(text: str, max_lines: int = 6) -> str:
    """Truncate text to max_lines, adding '...' if truncated"""
    lines = text.split("\n")
    if len(lines) <= max_lines:
        return text
    return "\n".join(lines[:max_lines]) + f"\n... ({len(lines) - max_lines} more lines)"


def create_styled_panel(content: Text | Markdown | str, title: str, color: str) -> Panel:
    return Panel(
        content,
        title=f"[bold {color}]{title}[/]",
        title_align="left",
        border_style=color,
        padding=(0, 1),
    )


class TerminalRenderer:
    """
    Turns turn events into terminal output.

    Text deltas are printed as they stream; the final answer is not reprinted.
    """

    def __init__(self, console: Console | None = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose
        self._streaming = False

    def _end_stream(self) -> None:
        if self._streaming:
            self.console.print()
            self._streaming = False

    def render(self, event: Event) -> None:
        data = event.data or {}
        kind = event.event_type

        if kind == "text_delta":
            self.console.print(data.get("delta", ""), end="", markup=False, highlight=False)
            self._streaming = True
            return

        self._end_stream()
        if kind == "tool_start":
            args = json.dumps(data.get("arguments", {}))
            if len(args) > 100:
                args = args[:100] + "..."
            self.console.print(Text.assemble(("🔧 ", ""), (data.get("tool", ""), f"bold {YELLOW}"), (f" {args}", DIM)))
        elif kind == "tool_end":
            status = "✅" if data.get("success") else "❌"
            if self.verbose or not data.get("success"):
                output = truncate_to_lines(str(data.get("output", "")))
                color = GREEN if data.get("success") else RED
                self.console.print(create_styled_panel(Text(output), f"{status} {data.get('tool', '')}", color))
            else:
                self.console.print(Text(f"{status} {data.get('tool', '')}", style=DIM))
        elif kind == "computer_event":
            step = f" [{data['step']}/{data['max_steps']}]" if data.get("step") else ""
            self.console.print(Text(f"🖥️  {data.get('type', '')}{step}: {data.get('message', '')}", style=CYAN))
        elif kind == "complete":
            if data.get("aborted"):
                self.console.print(Text("⚠️ Turn aborted", style=YELLOW))
        elif kind == "error":
            self.console.print(Text(f"❌ Error: {data.get('error', 'Unknown error')}", style=RED))
        elif kind == "cleared":
            self.console.print(Text("🧹 Conversation cleared", style=DIM))

    def print_report(self, text: str) -> None:
        self.console.print(create_styled_panel(Markdown(text), "Report", GREEN))


def format_todo_output(date: str, todos: list) -> str:
    """Todo list grouped by status (no colors, full visibility)"""
    if not todos:
        return f"No todos for {date}."

    lines = [f"Todos for {date}", ""]
    groups = [
        ("In Progress:", "[~]", "in_progress"),
        ("Pending:", "[ ]", "pending"),
        ("Completed:", "[x]", "completed"),
        ("Cancelled:", "[-]", "cancelled"),
    ]
    for title, box, status in groups:
        matching = [t for t in todos if t.status == status]
        if not matching:
            continue
        lines.append(title)
        for todo in matching:
            lines.append(f"  {box} {todo.id}. {todo.content} ({todo.priority})")
        lines.append("")

    open_todos = sum(1 for t in todos if t.status in ("pending", "in_progress"))
    lines.append(f"Total: {len(todos)} todos ({open_todos} open)")
    return "\n".join(lines)
