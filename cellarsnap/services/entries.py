from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cellarsnap.db.models import EntryTag, WineEntry


async def get_entry(db: AsyncSession, entry_id: int) -> WineEntry | None:
    return await db.get(WineEntry, entry_id)


async def list_by_owner_or_tag(
    db: AsyncSession,
    user_id: int,
    *,
    include_tagged: bool = True,
    limit: int = 100,
) -> list[WineEntry]:
    """Entries written by `user_id`, plus entries they are tagged on, newest first."""
    condition = WineEntry.owner_id == user_id
    if include_tagged:
        tagged = select(EntryTag.entry_id).where(EntryTag.user_id == user_id)
        condition = or_(condition, WineEntry.id.in_(tagged))

    result = await db.execute(
        select(WineEntry)
        .where(condition)
        .order_by(WineEntry.created_at.desc(), WineEntry.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_recent(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> list[WineEntry]:
    result = await db.execute(
        select(WineEntry)
        .order_by(WineEntry.created_at.desc(), WineEntry.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())
