# tests/test_auth.py

from __future__ import annotations

import hashlib
import threading

from todolist.auth import SessionTable, hash_password, register, require_auth
from todolist.state import TaskStore


def test_hash_password_is_plain_sha256() -> None:
    assert hash_password("pw1") == hashlib.sha256(b"pw1").hexdigest()


def test_register_twice_keeps_first_password(user_store: TaskStore) -> None:
    assert register(user_store, "alice", "pw1") is True
    assert register(user_store, "alice", "pw2") is False
    records = [u for u in user_store.users if u["username"] == "alice"]
    assert len(records) == 1
    assert records[0]["password_hash"] == hash_password("pw1")


def test_login_identify_logout(user_store: TaskStore, sessions: SessionTable) -> None:
    register(user_store, "alice", "pw1")
    token = sessions.login(user_store, "alice", "pw1")
    assert token
    assert sessions.identify(token) == "alice"

    sessions.logout(token)
    assert sessions.identify(token) is None


def test_login_wrong_password_issues_no_token(user_store: TaskStore, sessions: SessionTable) -> None:
    register(user_store, "alice", "pw1")
    assert sessions.login(user_store, "alice", "nope") is None
    assert sessions.login(user_store, "mallory", "pw1") is None
    assert len(sessions) == 0


def test_tokens_are_distinct(user_store: TaskStore, sessions: SessionTable) -> None:
    register(user_store, "alice", "pw1")
    tokens = {sessions.login(user_store, "alice", "pw1") for _ in range(20)}
    assert len(tokens) == 20
    assert all(len(t) >= 32 for t in tokens)


def test_require_auth(user_store: TaskStore, sessions: SessionTable) -> None:
    register(user_store, "alice", "pw1")
    token = sessions.login(user_store, "alice", "pw1")

    assert require_auth(sessions, token) == {"valid": True, "username": "alice"}
    for bad in (None, "", "forged"):
        result = require_auth(sessions, bad)
        assert result["valid"] is False
        assert result["code"] == "UNAUTHENTICATED"


def test_registered_users_persist(user_store: TaskStore) -> None:
    register(user_store, "alice", "pw1")
    reloaded = TaskStore(user_store.path, with_users=True)
    reloaded.load()
    assert reloaded.find_user("alice")["password_hash"] == hash_password("pw1")


def test_concurrent_logins_and_logouts(user_store: TaskStore, sessions: SessionTable) -> None:
    register(user_store, "alice", "pw1")
    threads, per_thread = 8, 25
    start = threading.Barrier(threads)
    kept: list[str] = []
    kept_lock = threading.Lock()

    def worker() -> None:
        start.wait()
        for i in range(per_thread):
            token = sessions.login(user_store, "alice", "pw1")
            if i % 2:
                sessions.logout(token)
            else:
                with kept_lock:
                    kept.append(token)

    pool = [threading.Thread(target=worker) for _ in range(threads)]
    for t in pool:
        t.start()
    for t in pool:
        t.join()

    assert len(set(kept)) == len(kept) == threads * ((per_thread + 1) // 2)
    assert len(sessions) == len(kept)
    assert all(sessions.identify(token) == "alice" for token in kept)
