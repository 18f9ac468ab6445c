"""
Submission loop: a single consumer that applies queued operations in order.

Front ends put `Submission`s on a queue and read `Event`s from a sink; the
loop owns the ChatSession, so turns for one conversation never overlap.
Interrupting is out-of-band (`ChatSession.interrupt`), since a queued
interrupt would only be seen after the turn it targets had finished.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from lmnr import observe

from reporter.core.events import Event, EventSink
from reporter.core.session import ChatSession

logger = logging.getLogger(__name__)


class OpType(Enum):
    USER_INPUT = "user_input"
    CLEAR = "clear"
    SHUTDOWN = "shutdown"


@dataclass
class Operation:
    """Operation to be executed by the assistant"""

    op_type: OpType
    data: Optional[dict[str, Any]] = None


@dataclass
class Submission:
    """Submission to the loop"""

    id: str
    operation: Operation


async def process_submission(session: ChatSession, submission: Submission, sink: EventSink) -> bool:
    """
    Process a single submission and return whether to continue running.

    Returns:
        bool: True to continue, False to shutdown
    """
    op = submission.operation
    logger.debug(f"Received {op.op_type.value} ({submission.id})")

    if op.op_type == OpType.USER_INPUT:
        text = op.data.get("text", "") if op.data else ""
        try:
            await session.send(text, sink)
        finally:
            await sink.emit(
                Event(event_type="turn_complete", data={"history_size": len(session.history)})
            )
        return True

    if op.op_type == OpType.CLEAR:
        session.clear()
        await sink.emit(Event(event_type="cleared"))
        return True

    if op.op_type == OpType.SHUTDOWN:
        return False

    logger.warning(f"Unknown operation: {op.op_type}")
    return True


@observe(name="submission_loop")
async def submission_loop(
    submission_queue: asyncio.Queue,
    session: ChatSession,
    sink: EventSink,
) -> None:
    """Main loop: processes submissions until SHUTDOWN or cancellation"""
    await sink.emit(Event(event_type="ready", data={"session_id": session.session_id}))

    while True:
        submission = await submission_queue.get()
        try:
            if not await process_submission(session, submission, sink):
                break
        except asyncio.CancelledError:
            break
        except Exception as e:
            # send() already emitted the error event
            logger.error(f"Error in submission loop: {e}")

    await sink.emit(Event(event_type="shutdown"))
    logger.debug("Submission loop exited")
