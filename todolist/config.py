"""Settings loaded from environment variables (+ optional .env).

One Settings object per process; command-line flags override it through
``Settings.with_overrides``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

ENV_PREFIX = "TODOLIST"

VARIANTS = ("cli", "single", "multi")

DEFAULT_DATA_FILES = {
    "cli": "todos.json",
    "single": "tasks.json",
    "multi": "todo_data.json",
}

DEFAULT_SORT_ORDERS = {
    "cli": "created",
    "single": "due",
    "multi": "smart",
}


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None or v.strip() == "" else v.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Optional[Path]) -> Optional[Path]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    variant: str
    data_file_override: Optional[Path]
    host: str
    port: int
    sort_order_override: Optional[str]
    cookie_name: str
    log_level: str
    log_dir: Path

    @property
    def data_file(self) -> Path:
        return self.data_file_override or Path(DEFAULT_DATA_FILES[self.variant])

    @property
    def sort_order(self) -> str:
        return self.sort_order_override or DEFAULT_SORT_ORDERS[self.variant]

    @property
    def multi_user(self) -> bool:
        return self.variant == "multi"

    def with_overrides(self, **changes: object) -> Settings:
        """Copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def load_settings() -> Settings:
    load_dotenv(find_dotenv(usecwd=True), override=False)

    variant = _env(_k("VARIANT"), "multi").lower()
    if variant not in VARIANTS:
        raise ValueError(f"{_k('VARIANT')} must be one of {', '.join(VARIANTS)}, got '{variant}'")

    sort_order = _env(_k("SORT"), "").lower() or None
    if sort_order is not None and sort_order not in ("created", "due", "smart"):
        raise ValueError(f"{_k('SORT')} must be created, due or smart, got '{sort_order}'")

    return Settings(
        variant=variant,
        data_file_override=_env_path(_k("DATA_FILE"), None),
        host=_env(_k("HOST"), "127.0.0.1"),
        port=_env_int(_k("PORT"), 8080),
        sort_order_override=sort_order,
        cookie_name=_env(_k("COOKIE_NAME"), "session_id"),
        log_level=_env(_k("LOG_LEVEL"), "INFO").upper(),
        log_dir=_env_path(_k("LOG_DIR"), Path(".local/todolist")) or Path(".local/todolist"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
