"""
Batch report generation: one turn, no terminal, result saved as markdown
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from reporter.context_manager.manager import render_prompt
from reporter.core.events import CollectingEventSink
from reporter.core.session import ChatSession
from reporter.runs import RunStore

logger = logging.getLogger(__name__)

PAST_REPORTS = 3
PAST_REPORT_CHARS = 4000


@dataclass
class ReportResult:
    text: str
    path: Optional[Path]
    tool_calls: int
    failed_tool_calls: int


def load_past_reports(output_dir: Path, limit: int = PAST_REPORTS) -> list[dict[str, str]]:
    """Most recent saved reports, newest first, each trimmed for the prompt"""
    if not output_dir.is_dir():
        return []
    files = sorted(output_dir.glob("report-*.md"), reverse=True)[:limit]
    return [{"name": f.stem, "text": f.read_text()[:PAST_REPORT_CHARS]} for f in files]


def build_report_prompt(
    lookback_days: int,
    output_dir: Path,
    custom_prompt: str = "",
    today: Optional[str] = None,
) -> str:
    return render_prompt(
        "report_prompt",
        today=today or datetime.now().date().isoformat(),
        lookback_days=lookback_days,
        custom_prompt=custom_prompt,
        past_reports=load_past_reports(output_dir),
    )


def save_report(text: str, output_dir: Path, name: Optional[str] = None) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%d-%H%M%S")
    suffix = f"-{name}" if name else ""
    path = output_dir / f"report-{stamp}{suffix}.md"
    path.write_text(text.rstrip() + "\n")
    return path


async def generate_report(
    session: ChatSession,
    lookback_days: int,
    output_dir: Path,
    custom_prompt: str = "",
    schedule_name: Optional[str] = None,
    run_store: Optional[RunStore] = None,
) -> ReportResult:
    """
    Run one report turn and save the final text.

    Nothing is written when the model returned no text. With a `run_store`
    the attempt is recorded in the run history, failed or not.
    """
    run = run_store.start(lookback_days, custom_prompt, schedule_name) if run_store else None
    prompt = build_report_prompt(lookback_days, output_dir, custom_prompt)
    sink = CollectingEventSink()
    try:
        text = await session.send(prompt, sink)
    except Exception as e:
        if run:
            run_store.finish_failure(run.run_id, str(e))
        raise

    tool_ends = sink.of_type("tool_end")
    failed = sum(1 for e in tool_ends if not (e.data or {}).get("success"))
    if failed:
        logger.warning(f"{failed} of {len(tool_ends)} tool calls failed during report generation")

    path = None
    if text.strip():
        path = save_report(text, output_dir, schedule_name)
        logger.info(f"Report saved to {path}")
        if run:
            run_store.finish_success(run.run_id, path)
    else:
        logger.warning("Model returned an empty report; nothing saved")
        if run:
            run_store.finish_failure(run.run_id, "empty report")
    return ReportResult(text=text, path=path, tool_calls=len(tool_ends), failed_tool_calls=failed)
