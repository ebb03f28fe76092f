"""
Registration, login sessions and the auth gate for the multi-user server.

Passwords are stored as one unsalted SHA-256 pass, matching existing data
files. This is weak; new deployments need a salted, iterated scheme, which
would change the stored hash format.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import threading
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .state import TaskStore

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def register(store: TaskStore, username: str, password: str) -> bool:
    """False when the username is taken; the existing record is left as is."""
    created = store.add_user(username, hash_password(password))
    if created:
        logger.info("Registered user %s", username)
    else:
        logger.info("Registration rejected, username taken: %s", username)
    return created


def check_credentials(store: TaskStore, username: str, password: str) -> bool:
    user = store.find_user(username)
    if user is None:
        return False
    return secrets.compare_digest(user["password_hash"], hash_password(password))


class SessionTable:
    """In-memory token -> username map; lost on restart."""

    def __init__(self) -> None:
        self._sessions: dict[str, str] = {}
        self._lock = threading.Lock()

    def login(self, store: TaskStore, username: str, password: str) -> Optional[str]:
        """New session token, or None for invalid credentials."""
        if not check_credentials(store, username, password):
            logger.info("Login failed for %s", username)
            return None
        token = secrets.token_urlsafe(TOKEN_BYTES)
        with self._lock:
            self._sessions[token] = username
        logger.info("Login ok for %s", username)
        return token

    def logout(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock:
            username = self._sessions.pop(token, None)
        if username is not None:
            logger.info("Logout for %s", username)

    def identify(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def require_auth(sessions: SessionTable, token: Optional[str]) -> dict:
    """
    {"valid": True, "username": ...} or
    {"valid": False, "code": "UNAUTHENTICATED", "message": ...}
    """
    username = sessions.identify(token)
    if username is None:
        return {
            "valid": False,
            "code": "UNAUTHENTICATED",
            "message": "Login required" if not token else "Invalid or expired session",
        }
    return {"valid": True, "username": username}
