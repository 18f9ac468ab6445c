"""
Governed browser sub-session: URL policy, output redaction and the session governor
"""

from reporter.computer.audit import redact_run_result, redact_secrets
from reporter.computer.policy import NetworkPolicy, PolicyCheckResult, validate_url_policy
from reporter.computer.session import ComputerSessionGovernor
from reporter.computer.types import (
    ComputerErrorCode,
    ComputerRunResult,
    ComputerSessionEvent,
    ComputerSessionState,
    ComputerTaskInput,
)

__all__ = [
    "ComputerErrorCode",
    "ComputerRunResult",
    "ComputerSessionEvent",
    "ComputerSessionGovernor",
    "ComputerSessionState",
    "ComputerTaskInput",
    "NetworkPolicy",
    "PolicyCheckResult",
    "redact_run_result",
    "redact_secrets",
    "validate_url_policy",
]
