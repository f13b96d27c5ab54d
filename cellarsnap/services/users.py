from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cellarsnap.db.models import User
from cellarsnap.schemas.friends import ProfileSummary


async def load_profiles(db: AsyncSession, user_ids: Iterable[int]) -> dict[int, ProfileSummary]:
    """Profile summaries keyed by id. Unknown ids get a bare summary."""
    ids = sorted(set(user_ids))
    if not ids:
        return {}

    result = await db.execute(select(User).where(User.id.in_(ids)))
    profiles = {
        user.id: ProfileSummary(id=user.id, display_name=user.display_name, email=user.email)
        for user in result.scalars().all()
    }
    for user_id in ids:
        profiles.setdefault(user_id, ProfileSummary(id=user_id))
    return profiles
