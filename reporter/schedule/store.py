"""
Report schedules

A schedule is a named cron expression plus an optional custom prompt. Stores
expose explicit load/save; the helpers on the base class are built on those.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from reporter.config import REPORTER_DIR

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULES_PATH = REPORTER_DIR / "schedules.json"
_NAME = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def is_valid_name(name: str) -> bool:
    return bool(_NAME.match(name))


class Schedule(BaseModel):
    name: str
    prompt: str = ""
    cron: str
    frequency_label: str
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ScheduleStore:
    def load(self) -> list[Schedule]:
        raise NotImplementedError

    def save(self, schedules: list[Schedule]) -> None:
        raise NotImplementedError

    def get(self, name: str) -> Optional[Schedule]:
        return next((s for s in self.load() if s.name == name), None)

    def add(self, schedule: Schedule) -> None:
        schedules = self.load()
        if any(s.name == schedule.name for s in schedules):
            raise ValueError(f'schedule "{schedule.name}" already exists')
        schedules.append(schedule)
        self.save(schedules)

    def remove(self, name: str) -> bool:
        schedules = self.load()
        kept = [s for s in schedules if s.name != name]
        if len(kept) == len(schedules):
            return False
        self.save(kept)
        return True

    def replace(self, name: str, schedule: Schedule) -> None:
        """Swap the schedule called `name` for `schedule`, keeping its position"""
        schedules = [schedule if s.name == name else s for s in self.load()]
        self.save(schedules)


class InMemoryScheduleStore(ScheduleStore):
    def __init__(self, schedules: Optional[list[Schedule]] = None):
        self._schedules = list(schedules or [])

    def load(self) -> list[Schedule]:
        return [s.model_copy() for s in self._schedules]

    def save(self, schedules: list[Schedule]) -> None:
        self._schedules = list(schedules)


class JsonScheduleStore(ScheduleStore):
    """`{"schedules": [...]}` in ~/reporter/schedules.json"""

    def __init__(self, path: Path | str = DEFAULT_SCHEDULES_PATH):
        self.path = Path(path).expanduser()

    def load(self) -> list[Schedule]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
            return [Schedule.model_validate(s) for s in raw.get("schedules", [])]
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable schedule file {self.path}: {e}")
            return []

    def save(self, schedules: list[Schedule]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"schedules": [s.model_dump() for s in schedules]}
        self.path.write_text(json.dumps(payload, indent=2) + "\n")
