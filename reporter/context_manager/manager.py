"""
Context management for conversation history
"""

import logging
from datetime import date
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Template

from reporter.core.messages import Message

logger = logging.getLogger(__name__)

PROMPT_FILE = Path(__file__).parent.parent / "prompts" / "system_prompt.yaml"


def render_prompt(key: str, prompt_file: Path = PROMPT_FILE, **variables: Any) -> str:
    """Load a prompt template from the YAML file and render it with Jinja2"""
    with open(prompt_file, "r") as f:
        prompt_data = yaml.safe_load(f)
        template_str = prompt_data.get(key, "")

    return Template(template_str).render(**variables).strip()


class ContextManager:
    """Owns the system prompt and the conversation history of one session"""

    def __init__(
        self,
        servers: list[str] | None = None,
        num_tools: int = 0,
        github_orgs: list[str] | None = None,
        lookback_days: int = 1,
        computer_enabled: bool = False,
        prompt_file: Path = PROMPT_FILE,
    ):
        self.prompt_file = prompt_file
        self.system_prompt = self._load_system_prompt(
            servers=servers or [],
            num_tools=num_tools,
            github_orgs=github_orgs or [],
            lookback_days=lookback_days,
            computer_enabled=computer_enabled,
            today=date.today().isoformat(),
        )
        self.items: list[Message] = []

    def _load_system_prompt(self, **variables: Any) -> str:
        return render_prompt("system_prompt", self.prompt_file, **variables)

    def add_message(self, message: Message) -> None:
        """Add a message to the history"""
        self.items.append(message)

    def get_messages(self) -> list[Message]:
        """Snapshot of the history for sending to the LLM"""
        return list(self.items)

    def clear(self) -> None:
        logger.debug(f"Clearing {len(self.items)} messages")
        self.items = []
