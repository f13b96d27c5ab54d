"""
Friend graph: request lifecycle, relationship views, and content visibility.

- repo: the narrow store interface over friend_requests and its SQL implementation
- resolution: picks the authoritative row per direction and derives the view
- state_machine: send / auto-accept / decline / cancel / unfriend
- query: relationship views, friend sets, pending lists, suggestions
- visibility: privacy-tier checks, single item and batch
"""

from .errors import (
    FriendGraphError,
    Unauthenticated,
    ValidationFailed,
    NotFound,
    Forbidden,
    PolicyDenied,
    Conflict,
    StoreFailure,
    DuplicateActiveEdge,
)
from .repo import FriendRequestEdge, FriendRequestStore, SqlFriendRequestStore
from .resolution import resolve_edge, relationship_from_rows
from .state_machine import FriendRequestStateMachine, FriendRequestResult
from .query import RelationshipQueryService, PendingRequests
from .visibility import VisibilityResolver, VisibilityContext, normalize_tier

__all__ = [
    # Errors
    "FriendGraphError",
    "Unauthenticated",
    "ValidationFailed",
    "NotFound",
    "Forbidden",
    "PolicyDenied",
    "Conflict",
    "StoreFailure",
    "DuplicateActiveEdge",
    # Store
    "FriendRequestEdge",
    "FriendRequestStore",
    "SqlFriendRequestStore",
    # Engine
    "resolve_edge",
    "relationship_from_rows",
    "FriendRequestStateMachine",
    "FriendRequestResult",
    "RelationshipQueryService",
    "PendingRequests",
    "VisibilityResolver",
    "VisibilityContext",
    "normalize_tier",
]
