"""
Per-day todo lists the assistant keeps for the user

Each day has its own list, stored as ~/reporter/todos/<YYYY-MM-DD>.json.
"""

import json
import logging
import re
import uuid
from datetime import date as Date
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ValidationError

from reporter.config import REPORTER_DIR

logger = logging.getLogger(__name__)

DEFAULT_TODOS_DIR = REPORTER_DIR / "todos"
OPEN_STATUSES = ("pending", "in_progress")
_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def resolve_date(raw: object = None) -> str:
    """`raw` when it is a YYYY-MM-DD string, else today"""
    if isinstance(raw, str) and _DATE.match(raw):
        return raw
    return Date.today().isoformat()


class Todo(BaseModel):
    id: str
    content: str
    status: Literal["pending", "in_progress", "completed", "cancelled"]
    priority: Literal["high", "medium", "low"]

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


class TodoStore:
    def load(self, date: str) -> list[Todo]:
        raise NotImplementedError

    def save(self, date: str, todos: list[Todo]) -> None:
        raise NotImplementedError


class InMemoryTodoStore(TodoStore):
    def __init__(self):
        self._todos: dict[str, list[Todo]] = {}

    def load(self, date: str) -> list[Todo]:
        return [t.model_copy() for t in self._todos.get(date, [])]

    def save(self, date: str, todos: list[Todo]) -> None:
        self._todos[date] = list(todos)


class JsonTodoStore(TodoStore):
    """`{"date": ..., "todos": [...]}` per day under ~/reporter/todos/"""

    def __init__(self, directory: Path | str = DEFAULT_TODOS_DIR):
        self.directory = Path(directory).expanduser()

    def _path(self, date: str) -> Path:
        return self.directory / f"{date}.json"

    def load(self, date: str) -> list[Todo]:
        path = self._path(date)
        if not path.exists():
            return []
        try:
            with open(path, "r") as f:
                raw = json.load(f)
            return [Todo.model_validate(t) for t in raw.get("todos", [])]
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable todo file {path}: {e}")
            return []

    def save(self, date: str, todos: list[Todo]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = {"date": date, "todos": [t.model_dump() for t in todos]}
        self._path(date).write_text(json.dumps(payload, indent=2) + "\n")


def open_count(todos: list[Todo]) -> int:
    return sum(1 for t in todos if t.is_open)


def parse_todos(raw: object) -> list[Todo]:
    """
    Validate the model's todo list. Missing ids are generated; content is
    trimmed and must not be empty. Raises ValueError on anything else.
    """
    if not isinstance(raw, list):
        raise ValueError("todos must be an array")
    todos = []
    for i, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise ValueError(f"todo {i} must be an object")
        content = item.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ValueError(f"todo {i} content cannot be empty")
        todo_id = item.get("id")
        if not isinstance(todo_id, str) or not todo_id.strip():
            todo_id = uuid.uuid4().hex[:8]
        try:
            todos.append(
                Todo(
                    id=todo_id.strip(),
                    content=content.strip(),
                    status=item.get("status"),
                    priority=item.get("priority"),
                )
            )
        except ValidationError as e:
            field = e.errors()[0]["loc"][0]
            raise ValueError(f"invalid todo {field}: {item.get(field)!r}") from e
    return todos

