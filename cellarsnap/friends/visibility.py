"""
Privacy-tier visibility.

Rules, first match wins:
1. owners always see their own content;
2. `public` (and any unknown or missing tier) is visible to everyone;
3. `private` is visible to nobody else;
4. `friends` requires an accepted friendship with the owner;
5. `friends_of_friends` additionally admits viewers one accepted hop away.

For lists, `build_context` computes the viewer's friend set (and, only when
needed, the friends-of-friends set) once; per-item checks then reuse it and
give exactly the same answers as standalone `can_view` calls.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence, TypeVar

from cellarsnap.db.models import PrivacyTier
from cellarsnap.friends.query import RelationshipQueryService

log = logging.getLogger(__name__)


class VisibleContent(Protocol):
    owner_id: int
    privacy_tier: Any


ContentT = TypeVar("ContentT", bound=VisibleContent)


def normalize_tier(value: Any) -> PrivacyTier:
    if isinstance(value, PrivacyTier):
        return value
    try:
        return PrivacyTier(value)
    except ValueError:
        return PrivacyTier.PUBLIC


@dataclass(frozen=True)
class VisibilityContext:
    viewer_id: int | None
    friend_ids: frozenset[int]
    friends_of_friends_ids: frozenset[int] | None = None


class VisibilityResolver:
    def __init__(self, relationships: RelationshipQueryService):
        self._relationships = relationships

    async def can_view(
        self,
        viewer_id: int | None,
        owner_id: int,
        tier: Any,
        friend_ids: frozenset[int] | set[int] | None = None,
        friends_of_friends_ids: frozenset[int] | set[int] | None = None,
    ) -> bool:
        if viewer_id is not None and viewer_id == owner_id:
            return True

        privacy = normalize_tier(tier)
        if privacy == PrivacyTier.PUBLIC:
            return True
        if privacy == PrivacyTier.PRIVATE or viewer_id is None:
            return False

        if friend_ids is None:
            friend_ids = await self._relationships.get_accepted_friend_ids(viewer_id)
        if owner_id in friend_ids:
            return True
        if privacy == PrivacyTier.FRIENDS:
            return False

        if friends_of_friends_ids is None:
            friends_of_friends_ids = await self._relationships.get_friends_of_friends(
                viewer_id, friend_ids
            )
        return owner_id in friends_of_friends_ids

    async def build_context(
        self, viewer_id: int | None, items: Sequence[VisibleContent]
    ) -> VisibilityContext:
        if viewer_id is None:
            return VisibilityContext(viewer_id=None, friend_ids=frozenset())

        friend_ids = await self._relationships.get_accepted_friend_ids(viewer_id)
        needs_second_hop = any(
            item.owner_id != viewer_id
            and item.owner_id not in friend_ids
            and normalize_tier(item.privacy_tier) == PrivacyTier.FRIENDS_OF_FRIENDS
            for item in items
        )
        friends_of_friends_ids = None
        if needs_second_hop:
            friends_of_friends_ids = await self._relationships.get_friends_of_friends(
                viewer_id, friend_ids
            )
        return VisibilityContext(viewer_id, friend_ids, friends_of_friends_ids)

    async def visibility(
        self, viewer_id: int | None, items: Sequence[VisibleContent]
    ) -> list[bool]:
        context = await self.build_context(viewer_id, items)
        return [
            await self.can_view(
                viewer_id,
                item.owner_id,
                item.privacy_tier,
                context.friend_ids,
                context.friends_of_friends_ids,
            )
            for item in items
        ]

    async def filter_visible(
        self, viewer_id: int | None, items: Sequence[ContentT]
    ) -> list[ContentT]:
        flags = await self.visibility(viewer_id, items)
        visible = [item for item, allowed in zip(items, flags) if allowed]
        log.debug("Visibility for viewer %s: %d of %d items", viewer_id, len(visible), len(items))
        return visible
