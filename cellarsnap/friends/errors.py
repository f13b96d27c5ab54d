"""Failure kinds surfaced by the friend graph engine.

Routers never catch these; `cellarsnap.api.errors` turns them into JSON
responses carrying the stable `kind` string and the HTTP status below.
"""

import re
from typing import Any


class FriendGraphError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str, *, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        return {
            "ok": False,
            "error": self.message,
            "kind": self.kind,
            "details": self.details,
        }


class Unauthenticated(FriendGraphError):
    kind = "unauthenticated"
    status_code = 401


class ValidationFailed(FriendGraphError):
    kind = "validation_failed"
    status_code = 400


class NotFound(FriendGraphError):
    kind = "not_found"
    status_code = 404


class Forbidden(FriendGraphError):
    kind = "forbidden"
    status_code = 403


class PolicyDenied(FriendGraphError):
    """The store refused a mutation the caller was otherwise entitled to."""

    kind = "policy_denied"
    status_code = 403


class Conflict(FriendGraphError):
    kind = "conflict"
    status_code = 409


class StoreFailure(FriendGraphError):
    kind = "store_failure"
    status_code = 500


class DuplicateActiveEdge(StoreFailure):
    """Insert collided with the active-pair unique index."""


# SQLSTATE insufficient_privilege; RLS violations are reported with it too.
INSUFFICIENT_PRIVILEGE = "42501"

_POLICY_PATTERN = re.compile(r"\b(?:row-level security|rls|permission denied)\b", re.IGNORECASE)


def sqlstate_of(orig: BaseException | None) -> str | None:
    """SQLSTATE of a driver error (asyncpg `sqlstate`, psycopg `pgcode`), if any."""
    while orig is not None:
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if code:
            return str(code)
        orig = orig.__cause__
    return None


def looks_like_policy_denial(message: str, sqlstate: str | None = None) -> bool:
    if sqlstate is not None:
        return sqlstate == INSUFFICIENT_PRIVILEGE
    return bool(_POLICY_PATTERN.search(message))
