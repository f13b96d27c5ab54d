from functools import lru_cache

from fastapi import Depends

from cellarsnap.core.config import settings
from cellarsnap.db.session import SessionLocal
from cellarsnap.friends import (
    FriendRequestStateMachine,
    FriendRequestStore,
    RelationshipQueryService,
    SqlFriendRequestStore,
    VisibilityResolver,
)


@lru_cache
def get_friend_store() -> FriendRequestStore:
    return SqlFriendRequestStore(SessionLocal, timeout=settings.STORE_TIMEOUT_SECONDS)


def get_state_machine(
    store: FriendRequestStore = Depends(get_friend_store),
) -> FriendRequestStateMachine:
    return FriendRequestStateMachine(store, history_limit=settings.RELATIONSHIP_HISTORY_LIMIT)


def get_relationship_service(
    store: FriendRequestStore = Depends(get_friend_store),
) -> RelationshipQueryService:
    return RelationshipQueryService(store, history_limit=settings.RELATIONSHIP_HISTORY_LIMIT)


def get_visibility_resolver(
    relationships: RelationshipQueryService = Depends(get_relationship_service),
) -> VisibilityResolver:
    return VisibilityResolver(relationships)
