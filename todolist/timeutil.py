"""
Overdue detection and human-readable due-time formatting.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .state import Task


DUE_INPUT_FORMAT = "%Y-%m-%dT%H:%M"
DISPLAY_FORMAT = "%Y-%m-%d %H:%M"

_DAY = timedelta(days=1)
_HOUR = timedelta(hours=1)
_MINUTE = timedelta(minutes=1)


def now_local() -> datetime:
    return datetime.now().astimezone()


def local_date(dt: datetime) -> date:
    """Calendar date of dt in the process's local timezone."""
    return dt.astimezone().date()


def parse_due(text: Optional[str]) -> Optional[datetime]:
    """
    Parse a due time typed into a form (YYYY-MM-DDTHH:MM, local time).

    Empty input means "no due date". Malformed input raises ValueError.
    """
    if text is None or not text.strip():
        return None
    return datetime.strptime(text.strip(), DUE_INPUT_FORMAT).astimezone()


def format_timestamp(dt: Optional[datetime]) -> str:
    if dt is None:
        return ""
    return dt.astimezone().strftime(DISPLAY_FORMAT)


def is_overdue(task: Task, now: datetime) -> bool:
    if task.due_at is None or task.completed:
        return False
    return task.due_at < now


def format_remaining(due_at: datetime, now: datetime) -> str:
    """
    "remaining N days|hours|minutes" for future due times, "overdue ..." for
    past ones. The largest unit whose threshold the gap reaches is used and
    the value is truncated to it.
    """
    if due_at >= now:
        prefix, gap = "remaining", due_at - now
    else:
        prefix, gap = "overdue", now - due_at

    if gap >= _DAY:
        return f"{prefix} {gap // _DAY} days"
    if gap >= _HOUR:
        return f"{prefix} {gap // _HOUR} hours"
    return f"{prefix} {gap // _MINUTE} minutes"
