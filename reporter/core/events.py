"""
Event sinks decouple a turn from whatever consumes its output: the terminal
renderer, the SSE bridge and the batch report generator all receive the same
stream of events.

Event types emitted by a turn:
    text_delta      {"delta": str}
    tool_start      {"id", "tool", "arguments"}
    tool_end        {"id", "tool", "output", "success"}
    computer_event  ComputerSessionEvent fields
    complete        {"text": str, "aborted": bool}
    error           {"error": str}

The submission loop adds ready, turn_complete, cleared and shutdown.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class Event:
    event_type: str
    data: Optional[dict[str, Any]] = None


class EventSink:
    """Receives events from a turn. The base class drops everything."""

    async def emit(self, event: Event) -> None:
        return None


NullEventSink = EventSink


class QueueEventSink(EventSink):
    """Forwards events to an asyncio queue consumed by another task"""

    def __init__(self, queue: asyncio.Queue | None = None):
        self.queue: asyncio.Queue = queue or asyncio.Queue()

    async def emit(self, event: Event) -> None:
        await self.queue.put(event)


class CollectingEventSink(EventSink):
    """Keeps every event in memory, for batch runs and tests"""

    def __init__(self):
        self.events: list[Event] = []

    async def emit(self, event: Event) -> None:
        self.events.append(event)

    @property
    def text(self) -> str:
        return "".join(
            (e.data or {}).get("delta", "")
            for e in self.events
            if e.event_type == "text_delta"
        )

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.event_type == event_type]
