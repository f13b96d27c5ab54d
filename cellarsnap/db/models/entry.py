"""Wine journal entries (read-only from the social graph's point of view)."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Integer, String, ForeignKey, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PrivacyTier(str, Enum):
    PUBLIC = "public"
    FRIENDS = "friends"
    FRIENDS_OF_FRIENDS = "friends_of_friends"
    PRIVATE = "private"


class WineEntry(Base):
    __tablename__ = "wine_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    wine_name: Mapped[str | None] = mapped_column(String, nullable=True)
    producer: Mapped[str | None] = mapped_column(String, nullable=True)
    vintage: Mapped[str | None] = mapped_column(String, nullable=True)
    privacy_tier: Mapped[str | None] = mapped_column(String, default=PrivacyTier.PUBLIC.value)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class EntryTag(Base):
    """A user tagged on someone's entry."""

    __tablename__ = "entry_tags"

    entry_id: Mapped[int] = mapped_column(
        ForeignKey("wine_entries.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    __table_args__ = (
        Index("ix_entry_tags_user", "user_id"),
    )
