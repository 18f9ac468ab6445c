"""Pydantic models for API requests and responses."""

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Request to run one chat turn."""

    text: str = Field(min_length=1)


class ToolInfo(BaseModel):
    name: str
    description: str


class ToolsResponse(BaseModel):
    servers: list[str]
    failures: dict[str, str]
    tools: list[ToolInfo]


class InterruptResponse(BaseModel):
    interrupted: bool


class HealthResponse(BaseModel):
    status: str
    model: str
    busy: bool
