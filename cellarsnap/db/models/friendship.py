"""Friend request edges."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import String, ForeignKey, DateTime, Index, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class FriendRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


ACTIVE_STATUSES = (FriendRequestStatus.PENDING, FriendRequestStatus.ACCEPTED)

_ACTIVE_PREDICATE = text("status IN ('pending', 'accepted')")


class FriendRequest(Base):
    """
    Directed edge requester -> recipient.

    Several rows may exist for the same pair over time; readers resolve them
    as a history. `pair_low`/`pair_high` hold the canonical unordered pair so
    that at most one *active* (pending or accepted) row exists per pair.
    Declined rows are not covered by that index.
    """

    __tablename__ = "friend_requests"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    requester_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    recipient_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    pair_low: Mapped[int] = mapped_column(nullable=False)
    pair_high: Mapped[int] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(16), default=FriendRequestStatus.PENDING.value)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("requester_id <> recipient_id", name="ck_friend_requests_not_self"),
        CheckConstraint("pair_low < pair_high", name="ck_friend_requests_pair_order"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined')",
            name="ck_friend_requests_status",
        ),
        Index(
            "uq_friend_requests_active_pair",
            "pair_low",
            "pair_high",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        Index("ix_friend_requests_direction_created", "requester_id", "recipient_id", "created_at"),
    )
