"""
Sort orders, list filters and the overdue banner count.

Every sort here relies on sorted() being stable: tasks with equal keys keep
their store order.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Iterable, Optional, TYPE_CHECKING

from .timeutil import is_overdue, local_date

if TYPE_CHECKING:
    from .state import Task, TaskStore


SORT_ORDERS = ["created", "due", "smart"]
FILTERS = ["", "today", "incomplete"]


def _due_key(task: Task) -> tuple[bool, datetime]:
    # Tasks without a due date go last.
    return (task.due_at is None, task.due_at or task.created_at)


def sort_by_created(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: t.created_at)


def sort_by_due(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=_due_key)


def sort_smart(tasks: Iterable[Task], now: datetime) -> list[Task]:
    """Overdue tasks first; due time ascending within each group."""
    return sorted(tasks, key=lambda t: (not is_overdue(t, now), *_due_key(t)))


def sort_tasks(tasks: Iterable[Task], order: str, now: datetime) -> list[Task]:
    if order == "created":
        return sort_by_created(tasks)
    if order == "due":
        return sort_by_due(tasks)
    if order == "smart":
        return sort_smart(tasks, now)
    raise ValueError(f"unknown sort order '{order}'")


def _filter_predicate(name: str, today: date) -> Callable[[Task], bool]:
    if name == "":
        return lambda t: True
    if name == "today":
        return lambda t: t.due_at is not None and local_date(t.due_at) == today
    if name == "incomplete":
        return lambda t: not t.completed
    raise ValueError(
        f"unknown filter '{name}'. Expected {' | '.join(repr(f) for f in FILTERS)}"
    )


def filter_tasks(tasks: Iterable[Task], name: str, today: date) -> list[Task]:
    keep = _filter_predicate(name, today)
    return [t for t in tasks if keep(t)]


def count_overdue(tasks: Iterable[Task], now: datetime) -> int:
    return sum(1 for t in tasks if is_overdue(t, now))


def list_view(
    store: TaskStore,
    owner: Optional[str],
    filter_name: str,
    order: str,
    now: datetime,
) -> tuple[list[Task], int]:
    """
    Owner-scoped, filtered, sorted tasks plus the overdue count over all of
    the owner's tasks (ignoring the filter).
    """
    owned = store.list(owner)
    shown = sort_tasks(filter_tasks(owned, filter_name, local_date(now)), order, now)
    return shown, count_overdue(owned, now)
