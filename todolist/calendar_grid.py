"""
Month calendar projection: a fixed 6x7 Sunday-first grid with tasks
bucketed by local due date.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, TYPE_CHECKING

from .timeutil import is_overdue, local_date

if TYPE_CHECKING:
    from .state import Task


GRID_CELLS = 42
WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def shift_month(year: int, month: int, delta: int = 0) -> tuple[int, int]:
    """
    Month arithmetic with rollover; also normalizes out-of-range months,
    e.g. (2024, 0) -> (2023, 12) and (2024, 13) -> (2025, 1).
    """
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


@dataclass
class CalendarEntry:
    task: Task
    overdue: bool


@dataclass
class CalendarCell:
    date: date
    css_class: str
    entries: list[CalendarEntry] = field(default_factory=list)

    @property
    def day(self) -> int:
        return self.date.day


@dataclass
class MonthView:
    year: int
    month: int
    cells: list[CalendarCell]

    @property
    def weeks(self) -> list[list[CalendarCell]]:
        return [self.cells[i:i + 7] for i in range(0, len(self.cells), 7)]

    @property
    def prev(self) -> tuple[int, int]:
        return shift_month(self.year, self.month, -1)

    @property
    def next(self) -> tuple[int, int]:
        return shift_month(self.year, self.month, 1)

    @property
    def title(self) -> str:
        return date(self.year, self.month, 1).strftime("%B %Y")


def grid_start(year: int, month: int) -> date:
    first = date(year, month, 1)
    # date.weekday() is Monday=0; the grid is Sunday-first.
    sunday_index = (first.weekday() + 1) % 7
    return first - timedelta(days=sunday_index)


def _cell_class(day: date, year: int, month: int, today: date) -> str:
    if day == today:
        return "today"
    if (day.year, day.month) != (year, month):
        return "other-month"
    return ""


def build_month(year: int, month: int, tasks: Iterable[Task], now: datetime) -> MonthView:
    """Project the given (already owner-scoped) tasks onto the month grid."""
    year, month = shift_month(year, month)
    today = local_date(now)

    by_day: dict[date, list[CalendarEntry]] = defaultdict(list)
    for task in tasks:
        if task.due_at is None:
            continue
        by_day[local_date(task.due_at)].append(CalendarEntry(task, is_overdue(task, now)))

    start = grid_start(year, month)
    cells = []
    for offset in range(GRID_CELLS):
        day = start + timedelta(days=offset)
        cells.append(CalendarCell(day, _cell_class(day, year, month, today), by_day.get(day, [])))
    return MonthView(year, month, cells)
