"""
Subprocess helper shared by the shell and grep tools
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from reporter.core.cancellation import race_cancel

logger = logging.getLogger(__name__)

KILL_GRACE_SEC = 5.0
MAX_OUTPUT = 30_000


@dataclass
class ProcessOutput:
    returncode: Optional[int]
    stdout: str
    stderr: str
    # "timeout" or "cancelled" when the process was stopped early
    stopped: Optional[str] = None


def truncate(output: str, limit: int = MAX_OUTPUT) -> str:
    if len(output) <= limit:
        return output
    return output[:limit] + f"\n\n... (output truncated at {limit} characters)"


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    proc.terminate()
    try:
        await asyncio.wait_for(proc.wait(), KILL_GRACE_SEC)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()


async def run_process(
    args: list[str],
    timeout: float,
    cancel_event: Optional[asyncio.Event] = None,
) -> ProcessOutput:
    """
    Run `args` to completion, or stop it on timeout or cancellation.

    The timeout is per call and independent of the cancel event.
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        race = await race_cancel(proc.communicate(), cancel_event, timeout)
        if race.finished:
            stdout, stderr = race.result()
            return ProcessOutput(
                proc.returncode,
                stdout.decode("utf-8", errors="replace"),
                stderr.decode("utf-8", errors="replace"),
            )
        logger.debug(f"Stopping {args[0]} ({race.stopped})")
        await _terminate(proc)
        return ProcessOutput(proc.returncode, "", "", stopped=race.stopped)
    finally:
        await _terminate(proc)
