from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cellarsnap.api.deps import get_visibility_resolver
from cellarsnap.core.config import settings
from cellarsnap.db.session import get_db
from cellarsnap.friends import NotFound, VisibilityResolver
from cellarsnap.schemas.entry import EntryListResponse, EntryOut
from cellarsnap.services.entries import get_entry, list_recent
from cellarsnap.utils.auth.dependencies import get_optional_user_id

router = APIRouter(tags=["entries"])


@router.get("/entries/{entry_id}", response_model=EntryOut)
async def read_entry(
    entry_id: int = Path(..., ge=1),
    viewer_id: int | None = Depends(get_optional_user_id),
    resolver: VisibilityResolver = Depends(get_visibility_resolver),
    db: AsyncSession = Depends(get_db),
):
    entry = await get_entry(db, entry_id)
    # Hidden entries answer exactly like missing ones.
    if entry is None or not await resolver.can_view(
        viewer_id, entry.owner_id, entry.privacy_tier
    ):
        raise NotFound("Entry not found.")
    return EntryOut.model_validate(entry)


@router.get("/feed", response_model=EntryListResponse)
async def read_feed(
    offset: int = Query(0, ge=0),
    viewer_id: int | None = Depends(get_optional_user_id),
    resolver: VisibilityResolver = Depends(get_visibility_resolver),
    db: AsyncSession = Depends(get_db),
):
    entries = await list_recent(db, limit=settings.FEED_PAGE_SIZE, offset=offset)
    visible = await resolver.filter_visible(viewer_id, entries)
    return EntryListResponse(entries=[EntryOut.model_validate(e) for e in visible])
