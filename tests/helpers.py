# tests/helpers.py

from __future__ import annotations

from datetime import datetime

# Fixed "current time" for everything that computes overdue / today.
NOW = datetime(2024, 1, 2, 12, 0).astimezone()


def local(*args: int) -> datetime:
    """Timezone-aware local datetime, the way the app stores due times."""
    return datetime(*args).astimezone()
