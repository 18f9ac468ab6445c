"""
Report run history

Every report generation, manual or scheduled, is recorded as a run that goes
`running -> completed | failed`. Only the most recent MAX_RUNS are kept.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from reporter.config import REPORTER_DIR

logger = logging.getLogger(__name__)

DEFAULT_RUNS_PATH = REPORTER_DIR / "report-runs.json"
MAX_RUNS = 200


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ReportRun(BaseModel):
    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source: Literal["manual", "schedule"] = "manual"
    schedule_name: Optional[str] = None
    lookback_days: int
    prompt: str = ""
    status: Literal["running", "completed", "failed"] = "running"
    started_at: str = Field(default_factory=_now)
    ended_at: Optional[str] = None
    saved_path: Optional[str] = None
    error: Optional[str] = None


class RunStore:
    def load(self) -> list[ReportRun]:
        raise NotImplementedError

    def save(self, runs: list[ReportRun]) -> None:
        raise NotImplementedError

    def start(
        self, lookback_days: int, prompt: str = "", schedule_name: Optional[str] = None
    ) -> ReportRun:
        run = ReportRun(
            source="schedule" if schedule_name else "manual",
            schedule_name=schedule_name,
            lookback_days=lookback_days,
            prompt=prompt,
        )
        runs = self.load()
        runs.append(run)
        self.save(runs[-MAX_RUNS:])
        return run

    def _finish(self, run_id: str, **changes) -> Optional[ReportRun]:
        runs = self.load()
        for i, run in enumerate(runs):
            if run.run_id == run_id:
                runs[i] = run.model_copy(update={"ended_at": _now(), **changes})
                self.save(runs)
                return runs[i]
        logger.warning(f"Report run {run_id} not found; not recording its result")
        return None

    def finish_success(self, run_id: str, saved_path: Optional[Path]) -> Optional[ReportRun]:
        return self._finish(
            run_id, status="completed", saved_path=str(saved_path) if saved_path else None
        )

    def finish_failure(self, run_id: str, error: str) -> Optional[ReportRun]:
        return self._finish(run_id, status="failed", error=error)

    def list_recent(self, limit: int = 50) -> list[ReportRun]:
        """Newest first"""
        return list(reversed(self.load()))[:limit]

    def latest_for_schedule(self, name: str) -> Optional[ReportRun]:
        return next((r for r in self.list_recent(MAX_RUNS) if r.schedule_name == name), None)


class InMemoryRunStore(RunStore):
    def __init__(self, runs: Optional[list[ReportRun]] = None):
        self._runs = list(runs or [])

    def load(self) -> list[ReportRun]:
        return [r.model_copy() for r in self._runs]

    def save(self, runs: list[ReportRun]) -> None:
        self._runs = list(runs)


class JsonRunStore(RunStore):
    """`{"runs": [...]}` in ~/reporter/report-runs.json, oldest first"""

    def __init__(self, path: Path | str = DEFAULT_RUNS_PATH):
        self.path = Path(path).expanduser()

    def load(self) -> list[ReportRun]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
            return [ReportRun.model_validate(r) for r in raw.get("runs", [])]
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable run history {self.path}: {e}")
            return []

    def save(self, runs: list[ReportRun]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"runs": [r.model_dump() for r in runs]}
        self.path.write_text(json.dumps(payload, indent=2) + "\n")
