"""
Report schedules and their crontab entries
"""

from reporter.schedule.crontab import CrontabInstaller, parse_time_expression
from reporter.schedule.store import (
    InMemoryScheduleStore,
    JsonScheduleStore,
    Schedule,
    ScheduleStore,
)

__all__ = [
    "CrontabInstaller",
    "InMemoryScheduleStore",
    "JsonScheduleStore",
    "Schedule",
    "ScheduleStore",
    "parse_time_expression",
]
