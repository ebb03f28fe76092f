"""
Operation dispatch shared by the CLI and the web front ends.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .auth import require_auth
from .operations import OPERATIONS, Runtime, ValidationError

logger = logging.getLogger(__name__)


def _error(status: int, code: str, message: str) -> dict:
    return {"status": status, "body": {"ok": False, "error": {"code": code, "message": message}}}


def handle_call(
    rt: Runtime,
    op: str,
    args: Optional[dict] = None,
    token: Optional[str] = None,
) -> dict:
    """
    Run one operation and return {"status": int, "body": dict}.

    In the multi-user configuration every owner-scoped operation first
    resolves the caller through the session table; anonymous callers get
    UNAUTHENTICATED (401) and nothing runs. Domain errors (NOT_FOUND,
    USERNAME_TAKEN, ...) come back with status 200, like successes.
    """
    operation = OPERATIONS.get(op)
    if operation is None or (operation.get("multi_user_only") and not rt.multi_user):
        return _error(400, "UNKNOWN_OP", f"Unknown operation: {op}")

    owner: Optional[str] = None
    if operation["owner_scoped"] and rt.sessions is not None:
        auth_result = require_auth(rt.sessions, token)
        if not auth_result["valid"]:
            return _error(401, auth_result["code"], auth_result["message"])
        owner = auth_result["username"]

    try:
        result = operation["handler"](rt, args or {}, owner)
    except ValidationError as err:
        logger.info("Rejected %s: %s", op, err.message)
        return _error(400, "INVALID_INPUT", err.message)
    except Exception as err:
        logger.exception("Operation %s failed", op)
        return _error(500, "INTERNAL_ERROR", str(err) if str(err) else "Unknown error")

    body: dict[str, Any] = dict(result)
    if operation["side_effecting"] and result["ok"]:
        persist_error = rt.store.last_persist_error
        if persist_error is not None:
            body["warning"] = {
                "code": "PERSISTENCE_FAILURE",
                "message": f"Change kept in memory but not saved: {persist_error.message}",
            }
    return {"status": 200, "body": body}
