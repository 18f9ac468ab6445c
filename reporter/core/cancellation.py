"""
Racing work against a turn's cancel event and an optional wall-clock limit.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Optional

CANCELLED = "cancelled"
TIMEOUT = "timeout"


@dataclass
class RaceResult:
    task: asyncio.Future
    # CANCELLED or TIMEOUT when the work was stopped before finishing
    stopped: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.stopped is None

    def result(self) -> Any:
        """The work's return value; re-raises its exception"""
        return self.task.result()


async def race_cancel(
    aw: Awaitable,
    cancel_event: Optional[asyncio.Event] = None,
    timeout: Optional[float] = None,
) -> RaceResult:
    """
    Run `aw` until it finishes, `cancel_event` is set or `timeout` passes.

    Unfinished work is cancelled and awaited before returning, also when the
    caller itself is cancelled. Work that finishes in the same tick as the
    cancel event counts as finished.
    """
    task = asyncio.ensure_future(aw)
    waiters = {task}
    cancelled = None
    if cancel_event is not None:
        cancelled = asyncio.create_task(cancel_event.wait())
        waiters.add(cancelled)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if cancelled is not None:
            cancelled.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if task in done:
        return RaceResult(task)
    return RaceResult(task, CANCELLED if cancelled is not None and cancelled in done else TIMEOUT)
