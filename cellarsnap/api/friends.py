from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from cellarsnap.api.deps import get_relationship_service, get_state_machine
from cellarsnap.core.config import settings
from cellarsnap.db.session import get_db
from cellarsnap.friends import FriendRequestResult, FriendRequestStateMachine, RelationshipQueryService
from cellarsnap.schemas.friends import (
    FriendListResponse,
    FriendRequestActionResponse,
    FriendRequestCreate,
    FriendSuggestion,
    FriendSuggestionsResponse,
    IncomingRequest,
    MarkSeenResponse,
    OutgoingRequest,
    PendingCountResponse,
    PendingRequestsResponse,
)
from cellarsnap.services.users import load_profiles
from cellarsnap.utils.auth.dependencies import get_current_user_id
from cellarsnap.utils.infrastructure.rate_limiter import rate_limit

router = APIRouter(prefix="/friends", tags=["friends"])

FRIEND_MUTATION_LIMIT = 30
FRIEND_MUTATION_WINDOW_SECONDS = 60


def _action_response(result: FriendRequestResult) -> FriendRequestActionResponse:
    return FriendRequestActionResponse(status=result.status.value, request_id=result.request_id)


@router.get("", response_model=FriendListResponse)
async def list_friends(
    user_id: int = Depends(get_current_user_id),
    relationships: RelationshipQueryService = Depends(get_relationship_service),
    db: AsyncSession = Depends(get_db),
):
    friend_ids = await relationships.get_accepted_friend_ids(user_id)
    profiles = await load_profiles(db, friend_ids)
    return FriendListResponse(friends=[profiles[i] for i in sorted(friend_ids)])


@router.get("/requests", response_model=PendingRequestsResponse)
async def list_friend_requests(
    user_id: int = Depends(get_current_user_id),
    relationships: RelationshipQueryService = Depends(get_relationship_service),
    db: AsyncSession = Depends(get_db),
):
    pending = await relationships.list_pending(user_id)
    profiles = await load_profiles(
        db,
        [r.requester_id for r in pending.incoming] + [r.recipient_id for r in pending.outgoing],
    )
    return PendingRequestsResponse(
        incoming=[
            IncomingRequest(
                id=r.id,
                requester=profiles[r.requester_id],
                created_at=r.created_at,
                seen_at=r.seen_at,
            )
            for r in pending.incoming
        ],
        outgoing=[
            OutgoingRequest(id=r.id, recipient=profiles[r.recipient_id], created_at=r.created_at)
            for r in pending.outgoing
        ],
    )


@router.get("/requests/count", response_model=PendingCountResponse)
async def count_friend_requests(
    user_id: int = Depends(get_current_user_id),
    relationships: RelationshipQueryService = Depends(get_relationship_service),
):
    count = await relationships.count_pending_incoming(user_id)
    return PendingCountResponse(pending_incoming_count=count)


@router.post(
    "/requests",
    response_model=FriendRequestActionResponse,
    dependencies=[
        Depends(rate_limit("friend-request", FRIEND_MUTATION_LIMIT, FRIEND_MUTATION_WINDOW_SECONDS))
    ],
)
async def send_friend_request(
    payload: FriendRequestCreate,
    user_id: int = Depends(get_current_user_id),
    machine: FriendRequestStateMachine = Depends(get_state_machine),
):
    result = await machine.request_friendship(user_id, payload.recipient_id)
    return _action_response(result)


@router.post(
    "/requests/mark-seen",
    response_model=MarkSeenResponse,
    dependencies=[
        Depends(rate_limit("friend-request-seen", FRIEND_MUTATION_LIMIT, FRIEND_MUTATION_WINDOW_SECONDS))
    ],
)
async def mark_friend_requests_seen(
    user_id: int = Depends(get_current_user_id),
    relationships: RelationshipQueryService = Depends(get_relationship_service),
):
    updated = await relationships.mark_requests_seen(user_id)
    return MarkSeenResponse(updated=updated)


@router.post(
    "/requests/{request_id}/decline",
    response_model=FriendRequestActionResponse,
    dependencies=[
        Depends(rate_limit("friend-request-decline", FRIEND_MUTATION_LIMIT, FRIEND_MUTATION_WINDOW_SECONDS))
    ],
)
async def decline_friend_request(
    request_id: str = Path(..., description="ID of the pending request addressed to you"),
    user_id: int = Depends(get_current_user_id),
    machine: FriendRequestStateMachine = Depends(get_state_machine),
):
    result = await machine.decline_request(user_id, request_id)
    return _action_response(result)


@router.delete(
    "/requests/{request_id}",
    response_model=FriendRequestActionResponse,
    dependencies=[
        Depends(rate_limit("friend-request-delete", FRIEND_MUTATION_LIMIT, FRIEND_MUTATION_WINDOW_SECONDS))
    ],
)
async def delete_friend_request(
    request_id: str = Path(..., description="Request to cancel, or friendship to end"),
    user_id: int = Depends(get_current_user_id),
    machine: FriendRequestStateMachine = Depends(get_state_machine),
):
    result = await machine.delete_or_unfriend(user_id, request_id)
    return _action_response(result)


@router.get("/suggestions", response_model=FriendSuggestionsResponse)
async def friend_suggestions(
    user_id: int = Depends(get_current_user_id),
    relationships: RelationshipQueryService = Depends(get_relationship_service),
    db: AsyncSession = Depends(get_db),
):
    ranked = await relationships.suggest_friends(user_id, limit=settings.FRIEND_SUGGESTION_LIMIT)
    profiles = await load_profiles(db, [candidate for candidate, _ in ranked])
    return FriendSuggestionsResponse(
        suggestions=[
            FriendSuggestion(**profiles[candidate].model_dump(), mutual_count=count)
            for candidate, count in ranked
        ]
    )
