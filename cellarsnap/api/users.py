from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from cellarsnap.api.deps import get_relationship_service, get_visibility_resolver
from cellarsnap.db.session import get_db
from cellarsnap.friends import RelationshipQueryService, VisibilityResolver
from cellarsnap.schemas.entry import EntryListResponse, EntryOut
from cellarsnap.schemas.friends import FriendRelationship
from cellarsnap.services.entries import list_by_owner_or_tag
from cellarsnap.utils.auth.dependencies import get_current_user_id

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{target_user_id}/relationship", response_model=FriendRelationship)
async def get_relationship(
    target_user_id: int = Path(..., description="Profile being viewed"),
    user_id: int = Depends(get_current_user_id),
    relationships: RelationshipQueryService = Depends(get_relationship_service),
):
    return await relationships.get_relationship(user_id, target_user_id)


@router.get("/{target_user_id}/entries", response_model=EntryListResponse)
async def list_user_entries(
    target_user_id: int = Path(..., description="Owner or tagged user"),
    user_id: int = Depends(get_current_user_id),
    resolver: VisibilityResolver = Depends(get_visibility_resolver),
    db: AsyncSession = Depends(get_db),
):
    entries = await list_by_owner_or_tag(db, target_user_id)
    visible = await resolver.filter_visible(user_id, entries)
    return EntryListResponse(entries=[EntryOut.model_validate(e) for e in visible])
