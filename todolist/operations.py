"""
All operation handlers for the to-do manager.

Handlers take the runtime, a dict of raw arguments (form fields or CLI
words, so mostly strings) and the resolved owner, and return
{"ok": True, "result": ...} or {"ok": False, "error": {...}}. Malformed
arguments raise ValidationError, which the dispatcher maps to INVALID_INPUT.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from .auth import SessionTable, register
from .calendar_grid import build_month
from .ordering import FILTERS, SORT_ORDERS, list_view
from .state import Task, TaskStore
from .timeutil import format_remaining, is_overdue, now_local, parse_due


@dataclass
class Runtime:
    """Process-wide collaborators, created at startup and passed to every call."""

    store: TaskStore
    sessions: Optional[SessionTable] = None
    sort_order: str = "created"
    clock: Callable[[], datetime] = field(default=now_local)

    @property
    def multi_user(self) -> bool:
        return self.sessions is not None


# ---------------------------------------------------------------------------
# Validation error helper
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def _validate_string(args: dict, field: str, required: bool = False,
                     allow_blank: bool = True) -> Optional[str]:
    val = args.get(field)
    if val is None:
        if required:
            raise ValidationError(f"{field}: Required")
        return None
    if not isinstance(val, str):
        raise ValidationError(f"{field}: Expected string, received {type(val).__name__}")
    if not allow_blank and not val.strip():
        raise ValidationError(f"{field}: Must not be empty")
    return val


def _validate_int(args: dict, field: str, required: bool = False,
                  minimum: Optional[int] = None, maximum: Optional[int] = None,
                  default: Optional[int] = None) -> Optional[int]:
    val = args.get(field)
    if val is None or val == "":
        if required:
            raise ValidationError(f"{field}: Required")
        return default
    if isinstance(val, bool):
        raise ValidationError(f"{field}: Expected number, received boolean")
    if isinstance(val, str):
        try:
            val = int(val.strip())
        except ValueError:
            raise ValidationError(f"{field}: Expected number, received '{val}'") from None
    if not isinstance(val, int):
        raise ValidationError(f"{field}: Expected number, received {type(val).__name__}")
    if minimum is not None and val < minimum:
        raise ValidationError(f"{field}: Number must be greater than or equal to {minimum}")
    if maximum is not None and val > maximum:
        raise ValidationError(f"{field}: Number must be less than or equal to {maximum}")
    return val


def _validate_enum(args: dict, field: str, options: list[str],
                   default: Optional[str] = None) -> Optional[str]:
    val = args.get(field)
    if val is None:
        return default
    if not isinstance(val, str):
        raise ValidationError(f"{field}: Expected string, received {type(val).__name__}")
    if val not in options:
        raise ValidationError(
            f"{field}: Invalid value. Expected {' | '.join(repr(o) for o in options)}, received '{val}'"
        )
    return val


def _validate_due(args: dict, field: str) -> Optional[datetime]:
    raw = _validate_string(args, field)
    try:
        return parse_due(raw)
    except ValueError:
        raise ValidationError(f"{field}: Expected YYYY-MM-DDTHH:MM, received '{raw}'") from None


def _not_found(task_id: int) -> dict:
    return {
        "ok": False,
        "error": {"code": "NOT_FOUND", "message": f"No task with id {task_id}"},
    }


def describe_task(task: Task, now: datetime) -> dict[str, Any]:
    """A task plus the values recomputed on every render."""
    return {
        "task": task,
        "overdue": is_overdue(task, now),
        "remaining": format_remaining(task.due_at, now) if task.due_at is not None else "",
    }


# ---------------------------------------------------------------------------
# Task handlers
# ---------------------------------------------------------------------------

def tasks_add(rt: Runtime, args: dict, owner: Optional[str]) -> dict:
    description = _validate_string(args, "description", required=True, allow_blank=False)
    due_at = _validate_due(args, "due_at")
    task = rt.store.add(description, due_at=due_at, owner=owner)
    return {"ok": True, "result": task}


def tasks_list(rt: Runtime, args: dict, owner: Optional[str]) -> dict:
    filter_name = _validate_enum(args, "filter", FILTERS, default="")
    order = _validate_enum(args, "order", SORT_ORDERS, default=rt.sort_order)
    now = rt.clock()
    tasks, overdue_count = list_view(rt.store, owner, filter_name, order, now)
    return {
        "ok": True,
        "result": {
            "items": [describe_task(t, now) for t in tasks],
            "filter": filter_name,
            "overdue_count": overdue_count,
        },
    }


def tasks_toggle(rt: Runtime, args: dict, owner: Optional[str]) -> dict:
    task_id = _validate_int(args, "id", required=True)
    task = rt.store.toggle(task_id, owner)
    if task is None:
        return _not_found(task_id)
    return {"ok": True, "result": task}


def tasks_edit(rt: Runtime, args: dict, owner: Optional[str]) -> dict:
    task_id = _validate_int(args, "id", required=True)
    description = _validate_string(args, "description", required=True, allow_blank=False)
    task = rt.store.edit(task_id, description, owner)
    if task is None:
        return _not_found(task_id)
    return {"ok": True, "result": task}


def tasks_delete(rt: Runtime, args: dict, owner: Optional[str]) -> dict:
    task_id = _validate_int(args, "id", required=True)
    task = rt.store.delete(task_id, owner)
    if task is None:
        return _not_found(task_id)
    return {"ok": True, "result": {"deleted": task.id}}


def calendar_month(rt: Runtime, args: dict, owner: Optional[str]) -> dict:
    now = rt.clock()
    year = _validate_int(args, "year", minimum=2, maximum=9998, default=now.year)
    # 0 and 13 are accepted and roll over into the neighbouring year.
    month = _validate_int(args, "month", minimum=0, maximum=13, default=now.month)
    return {"ok": True, "result": build_month(year, month, rt.store.list(owner), now)}


# ---------------------------------------------------------------------------
# User handlers
# ---------------------------------------------------------------------------

def users_register(rt: Runtime, args: dict, owner: Optional[str]) -> dict:
    username = _validate_string(args, "username", required=True, allow_blank=False)
    password = _validate_string(args, "password", required=True, allow_blank=False)
    if not register(rt.store, username, password):
        return {
            "ok": False,
            "error": {"code": "USERNAME_TAKEN", "message": f"Username '{username}' is already taken"},
        }
    return {"ok": True, "result": {"username": username}}


def users_login(rt: Runtime, args: dict, owner: Optional[str]) -> dict:
    username = _validate_string(args, "username", required=True)
    password = _validate_string(args, "password", required=True)
    token = rt.sessions.login(rt.store, username, password)
    if token is None:
        return {
            "ok": False,
            "error": {"code": "INVALID_CREDENTIALS", "message": "Invalid username or password"},
        }
    return {"ok": True, "result": {"username": username, "token": token}}


def users_logout(rt: Runtime, args: dict, owner: Optional[str]) -> dict:
    token = _validate_string(args, "token")
    rt.sessions.logout(token)
    return {"ok": True, "result": {"logged_out": True}}


# ---------------------------------------------------------------------------
# Operations registry (handler dispatch table)
# ---------------------------------------------------------------------------

OPERATIONS: dict[str, dict[str, Any]] = {
    "tasks.add": {
        "handler": tasks_add,
        "side_effecting": True,
        "owner_scoped": True,
    },
    "tasks.list": {
        "handler": tasks_list,
        "side_effecting": False,
        "owner_scoped": True,
    },
    "tasks.toggle": {
        "handler": tasks_toggle,
        "side_effecting": True,
        "owner_scoped": True,
    },
    "tasks.edit": {
        "handler": tasks_edit,
        "side_effecting": True,
        "owner_scoped": True,
    },
    "tasks.delete": {
        "handler": tasks_delete,
        "side_effecting": True,
        "owner_scoped": True,
    },
    "calendar.month": {
        "handler": calendar_month,
        "side_effecting": False,
        "owner_scoped": True,
        "multi_user_only": True,
    },
    "users.register": {
        "handler": users_register,
        "side_effecting": True,
        "owner_scoped": False,
        "multi_user_only": True,
    },
    "users.login": {
        "handler": users_login,
        "side_effecting": False,
        "owner_scoped": False,
        "multi_user_only": True,
    },
    "users.logout": {
        "handler": users_logout,
        "side_effecting": False,
        "owner_scoped": False,
        "multi_user_only": True,
    },
}
