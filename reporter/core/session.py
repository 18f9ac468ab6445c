"""
One conversation with the LLM and its tools.

A turn runs `AwaitingResponse -> (ExecutingTools -> AwaitingResponse)* -> Done`:
stream a response over the whole history, run every tool call it asks for
concurrently, feed the results back and repeat until the model stops asking
for tools, the round cap is hit or the turn is cancelled.
"""

import asyncio
import logging
import uuid
from typing import Optional

from lmnr import observe

from reporter.context_manager.manager import ContextManager
from reporter.core.cancellation import race_cancel
from reporter.core.events import Event, EventSink, NullEventSink
from reporter.core.messages import (
    ABORTED_MARKER,
    ABORTED_RESULT,
    Message,
    ProviderResponse,
    ToolCall,
    ToolResult,
)
from reporter.core.tools import ToolCallContext, ToolRouter

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 20


class ChatSession:
    """
    Maintains conversation state for one user.

    Turns never overlap: `send` holds a lock for the whole turn, so a second
    caller waits until the first turn is done.
    """

    def __init__(
        self,
        provider,
        tool_router: ToolRouter,
        context_manager: Optional[ContextManager] = None,
        max_rounds: int = MAX_TOOL_ROUNDS,
    ):
        self.provider = provider
        self.tool_router = tool_router
        self.context_manager = context_manager or ContextManager()
        self.max_rounds = max_rounds
        self.session_id = str(uuid.uuid4())
        self.cancel_event: Optional[asyncio.Event] = None
        self._turn_lock = asyncio.Lock()

    @property
    def history(self) -> list[Message]:
        return self.context_manager.get_messages()

    @property
    def is_busy(self) -> bool:
        return self._turn_lock.locked()

    def interrupt(self) -> None:
        """Cancel the active turn, if any"""
        if self.cancel_event is not None:
            self.cancel_event.set()

    def clear(self) -> None:
        self.context_manager.clear()

    @observe(name="send")
    async def send(
        self,
        text: str,
        sink: Optional[EventSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Run one turn for `text` and return the final assistant text.

        Tool failures and routing errors become error results for the LLM.
        Only a failing provider stream propagates, after an `error` event.
        """
        async with self._turn_lock:
            self.cancel_event = cancel_event or asyncio.Event()
            sink = sink or NullEventSink()
            try:
                return await self._run_turn(text, sink, self.cancel_event)
            except Exception as e:
                await sink.emit(Event(event_type="error", data={"error": str(e)}))
                raise
            finally:
                self.cancel_event = None

    async def _run_turn(self, text: str, sink: EventSink, cancel: asyncio.Event) -> str:
        self.context_manager.add_message(Message.user(text))
        tools = self.tool_router.catalog().tools()
        final_text = ""
        aborted = False

        for round_no in range(1, self.max_rounds + 1):
            if cancel.is_set():
                aborted = True
                break
            logger.debug(f"Round {round_no}/{self.max_rounds}")

            response = await self._stream_response(tools, sink, cancel)
            if response is None:
                aborted = True
                final_text = self.context_manager.items[-1].text
                break

            self.context_manager.add_message(
                Message.assistant(response.text, response.tool_calls)
            )
            final_text = response.text
            if not response.tool_calls:
                break

            results = await asyncio.gather(
                *(self._execute_tool(call, sink, cancel) for call in response.tool_calls)
            )
            self.context_manager.add_message(Message.tool_results(list(results)))
        else:
            logger.warning(f"Turn stopped after {self.max_rounds} tool rounds")

        await sink.emit(Event(event_type="complete", data={"text": final_text, "aborted": aborted}))
        return final_text

    async def _stream_response(
        self, tools, sink: EventSink, cancel: asyncio.Event
    ) -> Optional[ProviderResponse]:
        """
        Stream one response, racing it against the cancel event.

        Returns None when cancelled mid-stream; the partial text is then
        already in history with the aborted marker.
        """
        partial: list[str] = []

        async def on_text(delta: str) -> None:
            partial.append(delta)
            await sink.emit(Event(event_type="text_delta", data={"delta": delta}))

        race = await race_cancel(
            self.provider.stream_chat(
                self.context_manager.system_prompt,
                self.context_manager.get_messages(),
                tools,
                on_text,
            ),
            cancel,
        )

        stream = race.task
        if not stream.cancelled():
            error = stream.exception()
            if error is None:
                return stream.result()
            if not cancel.is_set():
                logger.error(f"Provider stream failed: {error}")
                raise error

        self.context_manager.add_message(Message.assistant("".join(partial) + ABORTED_MARKER))
        return None

    async def _execute_tool(
        self, call: ToolCall, sink: EventSink, cancel: asyncio.Event
    ) -> ToolResult:
        if cancel.is_set():
            return ToolResult(tool_call_id=call.id, content=ABORTED_RESULT, is_error=True)

        await sink.emit(
            Event(
                event_type="tool_start",
                data={"id": call.id, "tool": call.name, "arguments": call.input},
            )
        )
        context = ToolCallContext(call_id=call.id, cancel_event=cancel, sink=sink)
        try:
            output, success = await self.tool_router.call_tool(call.name, call.input, context)
        except Exception as e:
            logger.error(f"Tool {call.name} failed: {e}")
            output, success = f"Error: {e}", False

        logger.debug(f"Tool {call.name} finished (success={success})")
        await sink.emit(
            Event(
                event_type="tool_end",
                data={"id": call.id, "tool": call.name, "output": output, "success": success},
            )
        )
        return ToolResult(tool_call_id=call.id, content=output, is_error=not success)
