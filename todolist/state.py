"""
JSON-backed task store: the ordered task list, registered users and the id
counter, persisted after every mutation.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .schemas import StoreDict, TaskDict, UserDict
from .timeutil import now_local

logger = logging.getLogger(__name__)

DATA_FILE_MODE = 0o644


class PersistenceError(Exception):
    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


def _parse_ts(raw: str) -> datetime:
    # Naive timestamps are read as local time.
    return datetime.fromisoformat(raw).astimezone()


class Task:
    __slots__ = ("id", "description", "completed", "created_at", "due_at", "owner")

    def __init__(
        self,
        id: int,
        description: str,
        created_at: datetime,
        completed: bool = False,
        due_at: Optional[datetime] = None,
        owner: Optional[str] = None,
    ):
        self.id = id
        self.description = description
        self.completed = completed
        self.created_at = created_at
        self.due_at = due_at
        self.owner = owner

    def to_dict(self) -> TaskDict:
        data: TaskDict = {
            "id": self.id,
            "description": self.description,
            "completed": self.completed,
            "created_at": self.created_at.isoformat(),
        }
        if self.due_at is not None:
            data["due_at"] = self.due_at.isoformat()
        if self.owner is not None:
            data["owner"] = self.owner
        return data

    @classmethod
    def from_dict(cls, data: TaskDict) -> Task:
        due_raw = data.get("due_at")
        return cls(
            id=int(data["id"]),
            description=data.get("description", ""),
            completed=bool(data.get("completed", False)),
            created_at=_parse_ts(data["created_at"]),
            due_at=_parse_ts(due_raw) if due_raw else None,
            owner=data.get("owner"),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Task):
            return NotImplemented
        return all(getattr(self, s) == getattr(other, s) for s in self.__slots__)

    def __repr__(self) -> str:
        return f"Task(id={self.id}, description={self.description!r}, completed={self.completed})"


class TaskStore:
    """
    Owns every task (and, with ``with_users``, every user record).

    All public methods hold one re-entrant lock, so concurrent request
    handlers see each mutation and its save as a single step. Returned Task
    objects are live: change them only through the store.
    """

    def __init__(self, path: str | Path, with_users: bool = False):
        self.path = Path(path)
        self.with_users = with_users
        self.tasks: list[Task] = []
        self.users: list[UserDict] = []
        self.next_id = 1
        self.last_persist_error: Optional[PersistenceError] = None
        self._lock = threading.RLock()

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------

    def load(self) -> None:
        """Replace in-memory state with the file's. Absent or empty file means empty store."""
        with self._lock:
            self.tasks, self.users, self.next_id = [], [], 1
            if not self.path.exists():
                logger.info("No data file at %s, starting empty", self.path)
                return
            try:
                raw = self.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as err:
                raise PersistenceError(self.path, f"cannot read: {err}") from err
            if not raw.strip():
                return
            try:
                data: StoreDict = json.loads(raw)
                if not isinstance(data, dict):
                    raise TypeError(f"expected a JSON object, got {type(data).__name__}")
                self.tasks = [Task.from_dict(t) for t in data.get("tasks") or []]
                self.users = [
                    {"username": u["username"], "password_hash": u["password_hash"]}
                    for u in data.get("users") or []
                ]
                self.next_id = int(data.get("next_id", 1))
            except (ValueError, KeyError, TypeError) as err:
                raise PersistenceError(self.path, f"malformed data file: {err}") from err

            highest = max((t.id for t in self.tasks), default=0)
            if self.next_id <= highest:
                logger.warning(
                    "next_id %s in %s is not above highest id %s, repairing",
                    self.next_id, self.path, highest,
                )
                self.next_id = highest + 1
            logger.info(
                "Loaded %d tasks, %d users from %s", len(self.tasks), len(self.users), self.path
            )

    def to_dict(self) -> StoreDict:
        with self._lock:
            data: StoreDict = {}
            if self.with_users:
                data["users"] = [dict(u) for u in self.users]  # type: ignore[misc]
            data["tasks"] = [t.to_dict() for t in self.tasks]
            data["next_id"] = self.next_id
            return data

    def save(self) -> None:
        """Write the whole store; the previous file survives a failed write."""
        with self._lock:
            payload = json.dumps(self.to_dict(), indent=2, ensure_ascii=False)
            tmp_name: Optional[str] = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                # mkstemp creates 0600; keep the usual data-file mode.
                os.chmod(tmp_name, DATA_FILE_MODE)
                os.replace(tmp_name, self.path)
            except OSError as err:
                if tmp_name is not None and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise PersistenceError(self.path, f"cannot write: {err}") from err

    def _persist(self) -> None:
        try:
            self.save()
        except PersistenceError as err:
            logger.error("Save failed, keeping in-memory state: %s", err)
            self.last_persist_error = err
        else:
            self.last_persist_error = None

    # -----------------------------------------------------------------------
    # Tasks
    # -----------------------------------------------------------------------

    def _find(self, task_id: int, owner: Optional[str]) -> Optional[int]:
        for i, task in enumerate(self.tasks):
            if task.id == task_id and (owner is None or task.owner == owner):
                return i
        return None

    def add(
        self,
        description: str,
        due_at: Optional[datetime] = None,
        owner: Optional[str] = None,
    ) -> Task:
        with self._lock:
            task = Task(
                id=self.next_id,
                description=description,
                created_at=now_local(),
                due_at=due_at,
                owner=owner,
            )
            self.tasks.append(task)
            self.next_id += 1
            self._persist()
            logger.debug("Added task #%d owner=%s", task.id, owner)
            return task

    def get(self, task_id: int, owner: Optional[str] = None) -> Optional[Task]:
        with self._lock:
            i = self._find(task_id, owner)
            return None if i is None else self.tasks[i]

    def list(self, owner: Optional[str] = None) -> list[Task]:
        with self._lock:
            if owner is None:
                return list(self.tasks)
            return [t for t in self.tasks if t.owner == owner]

    def toggle(self, task_id: int, owner: Optional[str] = None) -> Optional[Task]:
        with self._lock:
            i = self._find(task_id, owner)
            if i is None:
                return None
            task = self.tasks[i]
            task.completed = not task.completed
            self._persist()
            return task

    def edit(self, task_id: int, description: str, owner: Optional[str] = None) -> Optional[Task]:
        with self._lock:
            i = self._find(task_id, owner)
            if i is None:
                return None
            task = self.tasks[i]
            task.description = description
            self._persist()
            return task

    def delete(self, task_id: int, owner: Optional[str] = None) -> Optional[Task]:
        with self._lock:
            i = self._find(task_id, owner)
            if i is None:
                return None
            task = self.tasks.pop(i)
            self._persist()
            return task

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    def find_user(self, username: str) -> Optional[UserDict]:
        with self._lock:
            for user in self.users:
                if user["username"] == username:
                    return user
            return None

    def add_user(self, username: str, password_hash: str) -> bool:
        """False when the username is already registered (exact match)."""
        with self._lock:
            if self.find_user(username) is not None:
                return False
            self.users.append({"username": username, "password_hash": password_hash})
            self._persist()
            return True

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {"tasks": len(self.tasks), "users": len(self.users), "next_id": self.next_id}
