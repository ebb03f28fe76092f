# tests/test_ordering.py

from __future__ import annotations

from datetime import timedelta

import pytest

from todolist.ordering import (
    count_overdue,
    filter_tasks,
    list_view,
    sort_by_created,
    sort_by_due,
    sort_smart,
    sort_tasks,
)
from todolist.state import Task, TaskStore

from .helpers import NOW, local


def _task(id: int, due=None, completed=False, created=None, owner=None) -> Task:
    return Task(
        id=id,
        description=f"task {id}",
        created_at=created or NOW - timedelta(days=10) + timedelta(minutes=id),
        completed=completed,
        due_at=due,
        owner=owner,
    )


def test_sort_by_created() -> None:
    a = _task(1, created=local(2024, 1, 1, 9, 0))
    b = _task(2, created=local(2023, 12, 31, 9, 0))
    assert [t.id for t in sort_by_created([a, b])] == [2, 1]


def test_sort_by_due_puts_undated_last() -> None:
    a = _task(1, due=local(2024, 1, 5, 9, 0))
    b = _task(2)
    c = _task(3, due=local(2024, 1, 3, 9, 0))
    assert [t.id for t in sort_by_due([a, b, c])] == [3, 1, 2]


def test_smart_sort_overdue_first_then_due() -> None:
    future_early = _task(1, due=NOW + timedelta(hours=1))
    overdue_late = _task(2, due=NOW - timedelta(hours=1))
    overdue_early = _task(3, due=NOW - timedelta(days=1))
    done_past = _task(4, due=NOW - timedelta(days=2), completed=True)

    ordered = sort_smart([future_early, overdue_late, overdue_early, done_past], NOW)
    assert [t.id for t in ordered] == [3, 2, 4, 1]


def test_smart_sort_is_stable_for_equal_keys() -> None:
    due = local(2024, 1, 2, 9, 0)
    a = _task(1, due=due)
    b = _task(2, due=due)
    for _ in range(3):
        assert [t.id for t in sort_smart([a, b], NOW)] == [1, 2]


def test_sort_tasks_rejects_unknown_order() -> None:
    with pytest.raises(ValueError):
        sort_tasks([], "priority", NOW)


def test_filter_today_and_incomplete() -> None:
    today = _task(1, due=local(2024, 1, 2, 18, 0))
    tomorrow = _task(2, due=local(2024, 1, 3, 9, 0))
    done = _task(3, due=local(2024, 1, 2, 8, 0), completed=True)
    undated = _task(4)
    tasks = [today, tomorrow, done, undated]

    assert [t.id for t in filter_tasks(tasks, "", NOW.date())] == [1, 2, 3, 4]
    assert [t.id for t in filter_tasks(tasks, "today", NOW.date())] == [1, 3]
    assert [t.id for t in filter_tasks(tasks, "incomplete", NOW.date())] == [1, 2, 4]
    with pytest.raises(ValueError):
        filter_tasks(tasks, "overdue", NOW.date())


def test_list_view_scopes_owner_before_filter(tmp_path) -> None:
    store = TaskStore(tmp_path / "data.json", with_users=True)
    mine = store.add("mine today", due_at=local(2024, 1, 2, 15, 0), owner="alice")
    store.add("mine tomorrow", due_at=local(2024, 1, 3, 15, 0), owner="alice")
    store.add("bob today", due_at=local(2024, 1, 2, 15, 0), owner="bob")

    shown, overdue = list_view(store, "alice", "today", "smart", NOW)
    assert [t.id for t in shown] == [mine.id]
    assert overdue == 0


def test_overdue_count_ignores_filter(tmp_path) -> None:
    store = TaskStore(tmp_path / "data.json", with_users=True)
    store.add("late", due_at=local(2023, 12, 30, 9, 0), owner="alice")
    store.add("late too", due_at=local(2024, 1, 1, 9, 0), owner="alice")
    store.add("today", due_at=local(2024, 1, 2, 18, 0), owner="alice")
    store.add("bob late", due_at=local(2023, 12, 1, 9, 0), owner="bob")

    shown, overdue = list_view(store, "alice", "today", "smart", NOW)
    assert len(shown) == 1
    assert overdue == 2
    assert count_overdue(store.list(), NOW) == 3
