"""
Session governor for LLM-directed browser tasks.

Each call to `ComputerSessionGovernor.run` owns exactly one session: it checks
provider support, asks for approval, validates the start URL, then hands the
task to the provider's browsing runner under a wall-clock ceiling merged with
the caller's cancel event. Every outward field is redacted and exactly one
`session_end` event is emitted, whatever the outcome.
"""

import asyncio
import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from reporter.computer.audit import redact_run_result, redact_secrets
from reporter.computer.policy import NetworkPolicy, validate_url_policy
from reporter.computer.types import (
    BrowsingTaskResult,
    ComputerErrorCode,
    ComputerRunResult,
    ComputerSessionEvent,
    ComputerSessionState,
    ComputerTaskInput,
)
from reporter.core.cancellation import CANCELLED, race_cancel

logger = logging.getLogger(__name__)


@dataclass
class ApprovalRequest:
    task: str
    start_url: Optional[str]
    max_steps: int


ApprovalHandler = Callable[[ApprovalRequest], Awaitable[bool]]
EventHandler = Callable[[ComputerSessionEvent], Awaitable[None]]


def make_session_id() -> str:
    return f"computer-{int(time.time() * 1000):x}-{secrets.token_hex(3)}"


class ComputerSessionGovernor:
    def __init__(
        self,
        provider,
        policy: NetworkPolicy,
        require_approval: bool = True,
        approval_handler: Optional[ApprovalHandler] = None,
        policy_check=validate_url_policy,
    ):
        self.provider = provider
        self.policy = policy
        self.require_approval = require_approval
        self.approval_handler = approval_handler
        self.policy_check = policy_check

    async def run(
        self,
        task: ComputerTaskInput,
        cancel_event: Optional[asyncio.Event] = None,
        on_event: Optional[EventHandler] = None,
    ) -> ComputerRunResult:
        run = _SessionRun(make_session_id(), task, on_event)
        await run.emit(
            "session_start",
            f"Starting computer session: {redact_secrets(task.task)}",
            max_steps=task.max_steps,
        )
        try:
            return await self._govern(run, task, cancel_event)
        except asyncio.CancelledError:
            await run.finish(
                ComputerSessionState.CANCELLED,
                ComputerErrorCode.ABORTED,
                "Computer session aborted.",
                "Computer session cancelled",
            )
            raise
        except Exception as e:
            logger.error(f"Computer session {run.session_id} failed: {e}")
            return await run.finish(
                ComputerSessionState.FAILED,
                ComputerErrorCode.FAILED,
                "Computer session failed.",
                str(e),
            )

    async def _govern(
        self,
        run: "_SessionRun",
        task: ComputerTaskInput,
        cancel_event: Optional[asyncio.Event],
    ) -> ComputerRunResult:
        if not self.provider.has_browsing_capability():
            return await run.finish(
                ComputerSessionState.FAILED,
                ComputerErrorCode.UNSUPPORTED,
                "Computer use unavailable for current provider/model.",
                f"Provider/model {getattr(self.provider, 'model', '')!r} does not support computer use.",
                end_message="Computer session failed fast: unsupported provider/model",
            )

        if self.require_approval:
            run.state = ComputerSessionState.APPROVAL_PENDING
            if self.approval_handler is None:
                return await run.finish(
                    ComputerSessionState.FAILED,
                    ComputerErrorCode.APPROVAL_HANDLER_MISSING,
                    "Computer task failed.",
                    "Computer session approval is required but no approval handler is configured.",
                )
            approved = await self.approval_handler(
                ApprovalRequest(task.task, task.start_url, task.max_steps)
            )
            if not approved:
                return await run.finish(
                    ComputerSessionState.CANCELLED,
                    ComputerErrorCode.APPROVAL_DENIED,
                    "Computer task failed.",
                    "Computer session was denied by the user.",
                )

        if task.start_url:
            check = self.policy_check(task.start_url, self.policy)
            if not check.ok:
                await run.emit(
                    "policy_block",
                    redact_secrets(check.message or "Blocked by policy."),
                    url=redact_secrets(task.start_url),
                )
                return await run.finish(
                    ComputerSessionState.FAILED,
                    check.code,
                    "Computer session blocked by policy before start.",
                    check.message or "Blocked by policy.",
                    visited_urls=[task.start_url],
                    end_message="Computer session ended: policy block.",
                )

        run.state = ComputerSessionState.RUNNING
        return await self._run_browsing(run, task, cancel_event)

    async def _run_browsing(
        self,
        run: "_SessionRun",
        task: ComputerTaskInput,
        cancel_event: Optional[asyncio.Event],
    ) -> ComputerRunResult:
        started = time.monotonic()
        stop = asyncio.Event()
        race = await race_cancel(
            self.provider.run_browsing_task(task, stop),
            cancel_event,
            timeout=task.max_duration_sec,
        )
        if not race.finished:
            stop.set()
            if race.stopped == CANCELLED:
                reason = "cancelled"
            else:
                reason = f"timed out after {task.max_duration_sec}s"
            return await run.finish(
                ComputerSessionState.CANCELLED,
                ComputerErrorCode.ABORTED,
                "Computer session aborted.",
                f"Computer session {reason}",
            )

        try:
            raw: BrowsingTaskResult = race.result()
        except Exception as e:
            logger.debug(f"computer session error: {e}")
            if cancel_event is not None and cancel_event.is_set():
                return await run.finish(
                    ComputerSessionState.CANCELLED,
                    ComputerErrorCode.ABORTED,
                    "Computer session aborted.",
                    str(e),
                )
            return await run.finish(
                ComputerSessionState.FAILED,
                ComputerErrorCode.FAILED,
                "Computer session failed.",
                str(e),
            )

        result = redact_run_result(
            ComputerRunResult(
                **raw.model_dump(),
                session_id=run.session_id,
                state=(
                    ComputerSessionState.COMPLETED
                    if raw.ok
                    else ComputerSessionState.FAILED
                ),
            )
        )
        for step, action in enumerate(result.actions, start=1):
            await run.emit(
                "action",
                action.detail or action.type,
                url=action.url,
                step=step,
                max_steps=task.max_steps,
            )
        elapsed_ms = int((time.monotonic() - started) * 1000)
        run.state = result.state
        await run.end(f"Computer session completed in {elapsed_ms}ms")
        return result


class _SessionRun:
    """State of one governed session; never reused"""

    def __init__(
        self,
        session_id: str,
        task: ComputerTaskInput,
        on_event: Optional[EventHandler],
    ):
        self.session_id = session_id
        self.task = task
        self.on_event = on_event
        self.state = ComputerSessionState.IDLE
        self.ended = False

    async def emit(self, event_type: str, message: str, **fields) -> None:
        event = ComputerSessionEvent(
            type=event_type, session_id=self.session_id, message=message, **fields
        )
        logger.info(json.dumps(event.model_dump(exclude_none=True)))
        if self.on_event is not None:
            try:
                await self.on_event(event)
            except Exception as e:
                logger.warning(f"Computer event handler failed: {e}")

    async def end(self, message: str) -> None:
        """Emit `session_end`; later calls are no-ops"""
        if self.ended:
            return
        self.ended = True
        await self.emit("session_end", message)

    async def finish(
        self,
        state: ComputerSessionState,
        code: ComputerErrorCode,
        summary: str,
        error_message: str,
        visited_urls: Optional[list[str]] = None,
        end_message: Optional[str] = None,
    ) -> ComputerRunResult:
        self.state = state
        result = redact_run_result(
            ComputerRunResult(
                ok=False,
                summary=summary,
                visited_urls=visited_urls or [],
                error_code=code.value,
                error_message=error_message,
                session_id=self.session_id,
                state=state,
            )
        )
        await self.end(redact_secrets(end_message or result.summary))
        return result
