"""
LLM provider backed by LiteLLM.

One class covers every vendor; the variant (anthropic or openai) is chosen
from configuration at startup and only changes the model string and key.
The conversation is kept provider-neutral (`reporter.core.messages`) and
converted to the OpenAI-style shape LiteLLM expects on every call.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Optional

from litellm import acompletion, get_model_info, stream_chunk_builder
from lmnr import observe

from reporter.computer.types import BrowsingTaskResult, ComputerTaskInput
from reporter.config import LLMConfig, resolve_secret
from reporter.core.messages import (
    ABORTED_RESULT,
    Message,
    ProviderResponse,
    ToolCall,
    ToolDescriptor,
)
from reporter.errors import ComputerUseUnsupported

logger = logging.getLogger(__name__)

TextCallback = Callable[[str], Awaitable[None]]
BrowserRunner = Callable[[ComputerTaskInput, Any], Awaitable[BrowsingTaskResult]]

_STOP_REASONS = {
    "stop": "end_turn",
    "tool_calls": "tool_use",
    "function_call": "tool_use",
    "length": "max_tokens",
}

DEFAULT_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


def get_tool_specs_for_llm(tools: list[ToolDescriptor]) -> list[dict[str, Any]]:
    """Get tool specifications in OpenAI format"""
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            },
        }
        for tool in tools
    ]


def to_litellm_messages(system_prompt: str, history: list[Message]) -> list[dict[str, Any]]:
    """
    Flatten the neutral history into chat-completion messages.

    Each assistant tool call must be answered by a `tool` message before the
    next assistant or user text. Calls left unanswered get a synthesized
    "Aborted" result and results with no matching call are dropped, so the
    vendor never sees a broken pairing.
    """
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    pending: dict[str, str] = {}

    def close_pending() -> None:
        for call_id in pending:
            messages.append({"role": "tool", "tool_call_id": call_id, "content": ABORTED_RESULT})
        pending.clear()

    for message in history:
        if message.role == "assistant":
            close_pending()
            calls = message.tool_calls
            text = message.text
            if not text and not calls:
                continue
            entry: dict[str, Any] = {"role": "assistant", "content": text or None}
            if calls:
                entry["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": json.dumps(call.input)},
                    }
                    for call in calls
                ]
                pending.update((call.id, call.name) for call in calls)
            messages.append(entry)
            continue

        for result in message.results:
            if pending.pop(result.tool_call_id, None) is None:
                logger.debug(f"Dropping orphan tool result {result.tool_call_id}")
                continue
            messages.append(
                {"role": "tool", "tool_call_id": result.tool_call_id, "content": result.content}
            )
        if message.text:
            close_pending()
            messages.append({"role": "user", "content": message.text})

    close_pending()
    return messages


def _parse_tool_calls(raw_calls) -> list[ToolCall]:
    calls = []
    for raw in raw_calls or []:
        arguments = raw.function.arguments or "{}"
        try:
            parsed = json.loads(arguments)
        except json.JSONDecodeError:
            logger.warning(f"Tool call {raw.function.name} has malformed arguments: {arguments[:200]}")
            parsed = {}
        calls.append(
            ToolCall(
                id=raw.id,
                name=raw.function.name,
                input=parsed if isinstance(parsed, dict) else {"value": parsed},
            )
        )
    return calls


class LiteLLMProvider:
    """
    Streaming chat plus an optional browsing runner.

    Browsing is only offered when a runner has been injected and LiteLLM
    reports that the model supports computer use.
    """

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        browser_runner: Optional[BrowserRunner] = None,
    ):
        self.model_name = model_name
        self.api_key = api_key
        self.browser_runner = browser_runner

    @property
    def model(self) -> str:
        return self.model_name

    @observe(name="stream_chat")
    async def stream_chat(
        self,
        system_prompt: str,
        history: list[Message],
        tools: list[ToolDescriptor],
        on_text: Optional[TextCallback] = None,
    ) -> ProviderResponse:
        """
        Stream one assistant response.

        Text deltas are handed to `on_text` as they arrive. Cancelling the
        awaiting task stops the stream; the caller keeps what it received.
        """
        messages = to_litellm_messages(system_prompt, history)
        specs = get_tool_specs_for_llm(tools)
        response = await acompletion(
            model=self.model_name,
            messages=messages,
            tools=specs or None,
            tool_choice="auto" if specs else None,
            api_key=self.api_key,
            stream=True,
        )

        chunks = []
        async for chunk in response:
            chunks.append(chunk)
            if not chunk.choices:
                continue
            delta = getattr(chunk.choices[0].delta, "content", None)
            if delta and on_text is not None:
                await on_text(delta)

        if not chunks:
            return ProviderResponse()

        full = stream_chunk_builder(chunks, messages=messages)
        choice = full.choices[0]
        finish_reason = choice.finish_reason or "stop"
        return ProviderResponse(
            text=choice.message.content or "",
            tool_calls=_parse_tool_calls(choice.message.tool_calls),
            stop_reason=_STOP_REASONS.get(finish_reason, finish_reason),
        )

    def has_browsing_capability(self) -> bool:
        if self.browser_runner is None:
            return False
        try:
            info = get_model_info(self.model_name)
        except Exception as e:
            logger.debug(f"No model info for {self.model_name}: {e}")
            return False
        return bool(info.get("supports_computer_use"))

    async def run_browsing_task(self, task: ComputerTaskInput, cancel_event) -> BrowsingTaskResult:
        if self.browser_runner is None:
            raise ComputerUseUnsupported(f"Computer use is unavailable for model {self.model_name}")
        return await self.browser_runner(task, cancel_event)


def create_provider(config: LLMConfig, browser_runner: Optional[BrowserRunner] = None) -> LiteLLMProvider:
    """Select the vendor variant from configuration"""
    key_env = config.api_key_env or DEFAULT_KEY_ENV[config.provider]
    api_key = resolve_secret(key_env)
    if not api_key:
        logger.warning(f"{key_env} is not set; {config.provider} calls will fail")
    model_name = config.model
    if not model_name.startswith(f"{config.provider}/"):
        model_name = f"{config.provider}/{model_name}"
    return LiteLLMProvider(model_name, api_key=api_key, browser_runner=browser_runner)
