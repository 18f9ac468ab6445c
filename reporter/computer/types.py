from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ComputerSessionState(str, Enum):
    IDLE = "idle"
    APPROVAL_PENDING = "approval_pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ComputerErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    DISABLED = "COMPUTER_DISABLED"
    UNSUPPORTED = "COMPUTER_USE_UNSUPPORTED"
    APPROVAL_HANDLER_MISSING = "APPROVAL_HANDLER_MISSING"
    APPROVAL_DENIED = "APPROVAL_DENIED"
    INVALID_URL = "INVALID_URL"
    UNSUPPORTED_PROTOCOL = "UNSUPPORTED_PROTOCOL"
    PRIVATE_NETWORK_BLOCKED = "POLICY_BLOCKED_PRIVATE_NETWORK"
    DOMAIN_BLOCKED = "POLICY_BLOCKED_DOMAIN"
    NOT_ALLOWLISTED = "POLICY_NOT_ALLOWLISTED"
    ABORTED = "COMPUTER_SESSION_ABORTED"
    FAILED = "COMPUTER_SESSION_FAILED"


class ComputerAction(BaseModel):
    type: str
    timestamp: str
    url: Optional[str] = None
    detail: Optional[str] = None


class ComputerArtifact(BaseModel):
    type: Literal["screenshot", "trace", "log"]
    path: Optional[str] = None
    label: Optional[str] = None


class ComputerTaskInput(BaseModel):
    task: str
    start_url: Optional[str] = None
    max_steps: int = Field(gt=0)
    max_duration_sec: float = Field(gt=0)


class BrowsingTaskResult(BaseModel):
    """What a provider's browsing runner hands back"""

    ok: bool
    summary: str = ""
    actions: list[ComputerAction] = []
    artifacts: list[ComputerArtifact] = []
    visited_urls: list[str] = []
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class ComputerRunResult(BrowsingTaskResult):
    """Outward result of one governed session (always redacted)"""

    session_id: str = ""
    state: ComputerSessionState = ComputerSessionState.IDLE


class ComputerSessionEvent(BaseModel):
    type: Literal["session_start", "action", "policy_block", "session_end"]
    session_id: str
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    message: str
    url: Optional[str] = None
    step: Optional[int] = None
    max_steps: Optional[int] = None
