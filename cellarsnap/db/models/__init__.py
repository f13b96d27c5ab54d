"""
SQLAlchemy database models.

- base: Base declarative class
- user: profile rows
- friendship: directed friend request edges
- entry: wine journal entries and user tags

Import any model from this module:
    from cellarsnap.db.models import User, FriendRequest, WineEntry
"""

# Base class (must be imported first)
from .base import Base

from .user import User
from .friendship import FriendRequest, FriendRequestStatus, ACTIVE_STATUSES
from .entry import WineEntry, EntryTag, PrivacyTier

__all__ = [
    "Base",
    "User",
    "FriendRequest",
    "FriendRequestStatus",
    "ACTIVE_STATUSES",
    "WineEntry",
    "EntryTag",
    "PrivacyTier",
]
