"""
Persisted data shapes for the to-do store.
Uses plain dicts on disk; the store converts them to Task objects.
"""

from __future__ import annotations

from typing import TypedDict


class TaskDict(TypedDict, total=False):
    id: int
    description: str
    completed: bool
    created_at: str
    due_at: str
    owner: str


class UserDict(TypedDict):
    username: str
    password_hash: str


class StoreDict(TypedDict, total=False):
    users: list[UserDict]
    tasks: list[TaskDict]
    next_id: int
