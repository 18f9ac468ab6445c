"""
Provider-neutral conversation model
"""

from typing import Any, Literal, Union

from pydantic import BaseModel, Field

ABORTED_MARKER = "\n[aborted]"
ABORTED_RESULT = "Aborted"


class ToolDescriptor(BaseModel):
    """A tool as published to the LLM"""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolCall(BaseModel):
    id: str
    name: str
    input: dict[str, Any] = {}


class ToolResult(BaseModel):
    tool_call_id: str
    content: str
    is_error: bool = False


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolCallBlock(BaseModel):
    type: Literal["tool_call"] = "tool_call"
    call: ToolCall


class ToolResultBlock(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    result: ToolResult


ContentBlock = Union[TextBlock, ToolCallBlock, ToolResultBlock]


class Message(BaseModel):
    role: Literal["user", "assistant"]
    blocks: list[ContentBlock] = []

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role="user", blocks=[TextBlock(text=text)])

    @classmethod
    def assistant(cls, text: str, tool_calls: list[ToolCall] | None = None) -> "Message":
        blocks: list[ContentBlock] = []
        if text:
            blocks.append(TextBlock(text=text))
        blocks.extend(ToolCallBlock(call=tc) for tc in tool_calls or [])
        return cls(role="assistant", blocks=blocks)

    @classmethod
    def tool_results(cls, results: list[ToolResult]) -> "Message":
        return cls(role="user", blocks=[ToolResultBlock(result=r) for r in results])

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.blocks if isinstance(b, TextBlock))

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [b.call for b in self.blocks if isinstance(b, ToolCallBlock)]

    @property
    def results(self) -> list[ToolResult]:
        return [b.result for b in self.blocks if isinstance(b, ToolResultBlock)]


class ProviderResponse(BaseModel):
    """One completed assistant response from a provider stream"""

    text: str = ""
    tool_calls: list[ToolCall] = []
    # "end_turn", "tool_use", "max_tokens" or the vendor's raw value
    stop_reason: str = "end_turn"
