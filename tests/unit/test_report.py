"""
Unit tests for batch report generation.
"""

import pytest
from conftest import FakeProvider, text_response, tool_response

from reporter.core.session import ChatSession
from reporter.core.tools import ToolRouter
from reporter.report import (
    build_report_prompt,
    generate_report,
    load_past_reports,
    save_report,
)
from reporter.runs import InMemoryRunStore

REPORT = "### What Happened\n- Merged #42\n\n### Decision Trail\nNothing notable.\n\n### Needs Attention\nNothing notable."


class TestPastReports:
    """Test loading earlier reports for the decision trail."""

    def test_newest_first_and_limited(self, tmp_path):
        for day in range(1, 6):
            (tmp_path / f"report-2026-01-0{day}-090000.md").write_text(f"day {day}")
        (tmp_path / "notes.md").write_text("not a report")

        reports = load_past_reports(tmp_path)

        assert [r["text"] for r in reports] == ["day 5", "day 4", "day 3"]
        assert reports[0]["name"] == "report-2026-01-05-090000"

    def test_long_reports_are_trimmed(self, tmp_path):
        (tmp_path / "report-2026-01-01-090000.md").write_text("x" * 10_000)

        assert len(load_past_reports(tmp_path)[0]["text"]) == 4000

    def test_missing_directory(self, tmp_path):
        assert load_past_reports(tmp_path / "missing") == []


class TestReportPrompt:
    """Test the rendered report instructions."""

    def test_sections_and_context(self, tmp_path):
        (tmp_path / "report-2026-01-01-090000.md").write_text("Decided to ship v2")

        prompt = build_report_prompt(3, tmp_path, custom_prompt="Focus on reviews", today="2026-01-02")

        assert "2026-01-02" in prompt
        assert "3 days" in prompt
        assert "Focus on reviews" in prompt
        for section in ("### What Happened", "### Decision Trail", "### Needs Attention"):
            assert section in prompt
        assert "Decided to ship v2" in prompt

    def test_single_day_without_history(self, tmp_path):
        prompt = build_report_prompt(1, tmp_path, today="2026-01-02")

        assert "looking back 1 day." in prompt
        assert "Past Reports" not in prompt
        assert "Additional instructions" not in prompt


class TestGenerateReport:
    """Test one batch turn end to end."""

    async def test_saves_final_text(self, tmp_path):
        session = ChatSession(FakeProvider([text_response(REPORT)]), ToolRouter())

        result = await generate_report(session, lookback_days=1, output_dir=tmp_path, schedule_name="daily")

        assert result.text == REPORT
        assert result.path.parent == tmp_path
        assert result.path.name.startswith("report-")
        assert result.path.name.endswith("-daily.md")
        assert result.path.read_text() == REPORT + "\n"

    async def test_counts_failed_tool_calls(self, tmp_path):
        session = ChatSession(
            FakeProvider([tool_response(("c1", "jira__search", {})), text_response(REPORT)]),
            ToolRouter(),
        )

        result = await generate_report(session, lookback_days=1, output_dir=tmp_path)

        assert result.tool_calls == 1
        assert result.failed_tool_calls == 1

    async def test_empty_report_is_not_saved(self, tmp_path):
        session = ChatSession(FakeProvider([text_response("")]), ToolRouter())

        result = await generate_report(session, lookback_days=1, output_dir=tmp_path / "out")

        assert result.path is None
        assert not (tmp_path / "out").exists()


class TestRunHistory:
    """Test that report attempts land in the run history."""

    async def test_completed_run(self, tmp_path):
        runs = InMemoryRunStore()
        session = ChatSession(FakeProvider([text_response(REPORT)]), ToolRouter())

        result = await generate_report(
            session, lookback_days=2, output_dir=tmp_path, schedule_name="daily", run_store=runs
        )

        run = runs.latest_for_schedule("daily")
        assert (run.status, run.lookback_days) == ("completed", 2)
        assert run.saved_path == str(result.path)

    async def test_empty_report_fails_run(self, tmp_path):
        runs = InMemoryRunStore()
        session = ChatSession(FakeProvider([text_response("")]), ToolRouter())

        await generate_report(session, lookback_days=1, output_dir=tmp_path, run_store=runs)

        run = runs.list_recent()[0]
        assert (run.source, run.status, run.error) == ("manual", "failed", "empty report")

    async def test_provider_error_fails_run(self, tmp_path):
        runs = InMemoryRunStore()
        session = ChatSession(FakeProvider([RuntimeError("rate limited")]), ToolRouter())

        with pytest.raises(RuntimeError):
            await generate_report(session, lookback_days=1, output_dir=tmp_path, run_store=runs)

        run = runs.list_recent()[0]
        assert (run.status, run.error) == ("failed", "rate limited")


def test_save_report_without_name(tmp_path):
    path = save_report("body", tmp_path / "reports")

    assert path.read_text() == "body\n"
    assert path.name.count("-") == 4
