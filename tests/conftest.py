# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from todolist.auth import SessionTable
from todolist.config import Settings
from todolist.main import create_app
from todolist.operations import Runtime
from todolist.state import TaskStore

from .helpers import NOW


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    s = TaskStore(tmp_path / "todos.json")
    s.load()
    return s


@pytest.fixture()
def user_store(tmp_path: Path) -> TaskStore:
    s = TaskStore(tmp_path / "todo_data.json", with_users=True)
    s.load()
    return s


@pytest.fixture()
def sessions() -> SessionTable:
    return SessionTable()


@pytest.fixture()
def cli_runtime(store: TaskStore) -> Runtime:
    return Runtime(store=store, sort_order="created", clock=lambda: NOW)


@pytest.fixture()
def multi_runtime(user_store: TaskStore, sessions: SessionTable) -> Runtime:
    return Runtime(store=user_store, sessions=sessions, sort_order="smart", clock=lambda: NOW)


def make_settings(tmp_path: Path, variant: str) -> Settings:
    return Settings(
        variant=variant,
        data_file_override=tmp_path / f"{variant}.json",
        host="127.0.0.1",
        port=8080,
        sort_order_override=None,
        cookie_name="session_id",
        log_level="INFO",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture()
def multi_client(tmp_path: Path, multi_runtime: Runtime) -> TestClient:
    app = create_app(make_settings(tmp_path, "multi"), runtime=multi_runtime)
    return TestClient(app, follow_redirects=False)


@pytest.fixture()
def single_client(tmp_path: Path, store: TaskStore) -> TestClient:
    rt = Runtime(store=store, sort_order="due", clock=lambda: NOW)
    app = create_app(make_settings(tmp_path, "single"), runtime=rt)
    return TestClient(app, follow_redirects=False)
