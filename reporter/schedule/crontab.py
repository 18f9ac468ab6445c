"""
Crontab integration for report schedules.

Each schedule owns at most one crontab line, identified by a trailing
`# reporter:<name>` tag. Lines without a reporter tag are never touched.
"""

import asyncio
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from croniter import croniter

from reporter.config import REPORTER_DIR

logger = logging.getLogger(__name__)

TAG_PREFIX = "# reporter:"
CRON_PATH_DIRS = "/usr/local/bin:/opt/homebrew/bin:/usr/bin:/bin"
# one cron field: numbers, names, ranges, steps and lists only
_CRON_FIELD = re.compile(r"^[0-9A-Za-z*/,-]+$")


def tag(name: str) -> str:
    return f"{TAG_PREFIX}{name}"


def _has_tag(line: str, name: str) -> bool:
    return line.rstrip().endswith(tag(name))


def validate_cron(cron: str) -> str:
    """
    Return `cron` normalized to single spaces, or raise ValueError unless it
    is exactly five valid cron fields. The result is written verbatim into a
    crontab line, so anything else is refused.
    """
    fields = cron.split()
    if len(fields) != 5 or not all(_CRON_FIELD.match(f) for f in fields):
        raise ValueError(f"not a 5-field cron expression: {cron!r}")
    normalized = " ".join(fields)
    if not croniter.is_valid(normalized):
        raise ValueError(f"invalid cron expression: {cron!r}")
    return normalized


def next_run(cron: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Next time `cron` fires after `now` (local time), or None if it is invalid"""
    if not croniter.is_valid(cron):
        return None
    return croniter(cron, now or datetime.now()).get_next(datetime)


def format_time_until(target: datetime, now: Optional[datetime] = None) -> str:
    seconds = (target - (now or datetime.now())).total_seconds()
    if seconds < 60:
        return "< 1m"
    total_minutes = int(seconds // 60)
    days, rest = divmod(total_minutes, 1440)
    hours, minutes = divmod(rest, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    return " ".join(parts)


def parse_time_expression(expression: str) -> tuple[str, str]:
    """
    Turn "9am", "3pm", "*/6h", "*/15m" or a raw cron expression into
    (cron, label).
    """
    expression = expression.strip()
    match = re.fullmatch(r"(\d{1,2})(am|pm)", expression, re.IGNORECASE)
    if match:
        hour = int(match.group(1))
        is_pm = match.group(2).lower() == "pm"
        if not 1 <= hour <= 12:
            raise ValueError(f"invalid hour in {expression!r}")
        if is_pm and hour != 12:
            hour += 12
        if not is_pm and hour == 12:
            hour = 0
        return validate_cron(f"0 {hour} * * *"), f"Daily at {expression}"

    match = re.fullmatch(r"\*/(\d+)h", expression)
    if match:
        hours = int(match.group(1))
        if not 1 <= hours <= 23:
            raise ValueError(f"invalid hour interval in {expression!r}")
        return validate_cron(f"0 */{hours} * * *"), f"Every {hours} hour(s)"

    match = re.fullmatch(r"\*/(\d+)m", expression)
    if match:
        minutes = int(match.group(1))
        if not 1 <= minutes <= 59:
            raise ValueError(f"invalid minute interval in {expression!r}")
        return validate_cron(f"*/{minutes} * * * *"), f"Every {minutes} minute(s)"

    cron = validate_cron(expression)
    return cron, f"Cron: {cron}"


def build_cron_line(name: str, cron: str, log_dir: Path = REPORTER_DIR) -> str:
    cron = validate_cron(cron)
    log_path = Path(log_dir).expanduser() / f"schedule-{name}.log"
    return (
        f"{cron} PATH={CRON_PATH_DIRS}:$PATH {sys.executable} -m reporter.main "
        f"report --schedule {name} >> {log_path} 2>&1 {tag(name)}"
    )


def rewrite_crontab(current: str, name: str, new_line: str | None = None) -> str:
    """Drop the line tagged for `name` and optionally append its replacement"""
    lines = [line for line in current.splitlines() if line and not _has_tag(line, name)]
    if new_line:
        lines.append(new_line)
    return "\n".join(lines) + "\n" if lines else ""


class CrontabInstaller:
    """Reads and writes the user's crontab through the `crontab` command"""

    def __init__(self, log_dir: Path = REPORTER_DIR):
        self.log_dir = log_dir

    async def read(self) -> str:
        proc = await asyncio.create_subprocess_exec(
            "crontab",
            "-l",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await proc.communicate()
        # exits 1 when the user has no crontab yet
        if proc.returncode != 0:
            return ""
        return stdout.decode()

    async def write(self, content: str) -> bool:
        proc = await asyncio.create_subprocess_exec(
            "crontab",
            "-",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate(content.encode())
        if proc.returncode != 0:
            logger.error(f"Failed to write crontab: {stderr.decode().strip()}")
            return False
        return True

    async def install(self, name: str, cron: str) -> bool:
        try:
            current = await self.read()
            line = build_cron_line(name, cron, self.log_dir)
            return await self.write(rewrite_crontab(current, name, line))
        except (OSError, ValueError) as e:
            logger.error(f"Crontab error: {e}")
            return False

    async def remove(self, name: str) -> bool:
        try:
            current = await self.read()
            if not current:
                return True
            return await self.write(rewrite_crontab(current, name))
        except OSError as e:
            logger.error(f"Crontab error: {e}")
            return False

    async def entries(self) -> list[str]:
        current = await self.read()
        return [line for line in current.splitlines() if TAG_PREFIX in line]
