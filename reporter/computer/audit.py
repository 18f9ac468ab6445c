"""
Secret redaction for everything a browser session reports outward
"""

import re
from typing import TypeVar

from reporter.computer.types import BrowsingTaskResult, ComputerAction

REDACTED = "[REDACTED]"

R = TypeVar("R", bound=BrowsingTaskResult)

SECRET_PATTERNS = [
    # Slack tokens
    re.compile(r"\b(xox[baprs]-[A-Za-z0-9-]{8,})\b"),
    re.compile(r"\b(Bearer\s+[A-Za-z0-9._=-]{16,})\b", re.IGNORECASE),
    # OpenAI and Anthropic keys, including sk-proj- and sk-ant-api03-
    re.compile(r"\bsk-[A-Za-z0-9_-]{16,}"),
    # GitHub tokens
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}"),
    re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}"),
    # generic long secrets
    re.compile(r"\b[A-Za-z0-9+/=]{32,}\b"),
]


def redact_secrets(text: str) -> str:
    for pattern in SECRET_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def _maybe(text: str | None) -> str | None:
    return redact_secrets(text) if text else text


def redact_action(action: ComputerAction) -> ComputerAction:
    return action.model_copy(
        update={"url": _maybe(action.url), "detail": _maybe(action.detail)}
    )


def redact_run_result(result: R) -> R:
    return result.model_copy(
        update={
            "summary": redact_secrets(result.summary),
            "error_message": _maybe(result.error_message),
            "visited_urls": [redact_secrets(u) for u in result.visited_urls],
            "actions": [redact_action(a) for a in result.actions],
        }
    )
