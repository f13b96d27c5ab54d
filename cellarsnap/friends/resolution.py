"""Read-time resolution of a pair's request history."""

from typing import Iterable

from cellarsnap.db.models import FriendRequestStatus
from cellarsnap.friends.repo import FriendRequestEdge
from cellarsnap.schemas.friends import FriendRelationship, RelationshipStatus

HISTORY_LIMIT = 10

_PRIORITY = {
    FriendRequestStatus.ACCEPTED: 0,
    FriendRequestStatus.PENDING: 1,
    FriendRequestStatus.DECLINED: 2,
}


def resolve_edge(
    rows: Iterable[FriendRequestEdge], limit: int = HISTORY_LIMIT
) -> FriendRequestEdge | None:
    """
    Pick the authoritative row for one direction.

    accepted > pending > declined; within a status the most recent
    `created_at` wins. Only the `limit` newest rows are considered.
    """
    newest_first = sorted(rows, key=lambda row: row.created_at, reverse=True)[:limit]
    if not newest_first:
        return None
    # min() is stable: among equal priorities the first (newest) row wins.
    return min(newest_first, key=lambda row: _PRIORITY[row.status])


def relationship_from_rows(
    outgoing: FriendRequestEdge | None,
    incoming: FriendRequestEdge | None,
) -> FriendRelationship:
    outgoing_pending = outgoing is not None and outgoing.status == FriendRequestStatus.PENDING
    incoming_pending = incoming is not None and incoming.status == FriendRequestStatus.PENDING
    outgoing_accepted = outgoing is not None and outgoing.status == FriendRequestStatus.ACCEPTED
    incoming_accepted = incoming is not None and incoming.status == FriendRequestStatus.ACCEPTED

    friends = outgoing_accepted or incoming_accepted
    if friends:
        status = RelationshipStatus.FRIENDS
    elif incoming_pending:
        status = RelationshipStatus.REQUEST_RECEIVED
    elif outgoing_pending:
        status = RelationshipStatus.REQUEST_SENT
    else:
        status = RelationshipStatus.NONE

    friend_request_id = None
    if outgoing_accepted:
        friend_request_id = outgoing.id
    elif incoming_accepted:
        friend_request_id = incoming.id

    return FriendRelationship(
        status=status,
        following=friends or outgoing_pending,
        follows_you=friends or incoming_pending,
        friends=friends,
        outgoing_request_id=outgoing.id if outgoing_pending else None,
        incoming_request_id=incoming.id if incoming_pending else None,
        friend_request_id=friend_request_id,
    )
