import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from cellarsnap.db.models import FriendRequestStatus
from cellarsnap.friends.repo import FriendRequestEdge, FriendRequestStore, touching_user
from cellarsnap.friends.resolution import HISTORY_LIMIT, relationship_from_rows, resolve_edge
from cellarsnap.schemas.friends import FriendRelationship, RelationshipStatus

log = logging.getLogger(__name__)


@dataclass
class PendingRequests:
    incoming: list[FriendRequestEdge] = field(default_factory=list)
    outgoing: list[FriendRequestEdge] = field(default_factory=list)


class RelationshipQueryService:
    """Read side of the friend graph. Nothing here is cached across calls."""

    def __init__(self, store: FriendRequestStore, *, history_limit: int = HISTORY_LIMIT):
        self._store = store
        self._history_limit = history_limit

    async def get_relationship(self, current_user_id: int, target_user_id: int) -> FriendRelationship:
        if current_user_id == target_user_id:
            return relationship_from_rows(None, None)

        outgoing_rows, incoming_rows = await asyncio.gather(
            self._store.query_pair(current_user_id, target_user_id, self._history_limit),
            self._store.query_pair(target_user_id, current_user_id, self._history_limit),
        )
        return relationship_from_rows(
            resolve_edge(outgoing_rows, self._history_limit),
            resolve_edge(incoming_rows, self._history_limit),
        )

    async def get_accepted_friend_ids(self, user_id: int) -> frozenset[int]:
        edges = await touching_user(self._store, [user_id], FriendRequestStatus.ACCEPTED)
        return frozenset(edge.other_party(user_id) for edge in edges)

    async def is_accepted_friend(self, user_id: int, other_user_id: int) -> bool:
        if user_id == other_user_id:
            return False
        relationship = await self.get_relationship(user_id, other_user_id)
        return relationship.status == RelationshipStatus.FRIENDS

    async def get_friends_of_friends(
        self,
        user_id: int,
        friend_ids: Iterable[int] | None = None,
    ) -> frozenset[int]:
        """Users one accepted hop beyond `user_id`'s friends, minus the user and those friends."""
        friends = (
            frozenset(friend_ids)
            if friend_ids is not None
            else await self.get_accepted_friend_ids(user_id)
        )
        if not friends:
            return frozenset()

        edges = await touching_user(self._store, friends, FriendRequestStatus.ACCEPTED)
        reachable: set[int] = set()
        for edge in edges:
            if edge.requester_id in friends:
                reachable.add(edge.recipient_id)
            if edge.recipient_id in friends:
                reachable.add(edge.requester_id)
        reachable.discard(user_id)
        return frozenset(reachable - friends)

    async def list_pending(self, user_id: int) -> PendingRequests:
        edges = await touching_user(self._store, [user_id], FriendRequestStatus.PENDING)
        edges.sort(key=lambda edge: edge.created_at, reverse=True)
        pending = PendingRequests()
        for edge in edges:
            if edge.recipient_id == user_id:
                pending.incoming.append(edge)
            else:
                pending.outgoing.append(edge)
        return pending

    async def count_pending_incoming(self, user_id: int, *, unseen_only: bool = False) -> int:
        edges = await self._store.query_edges_touching_any(
            [user_id], "recipient", FriendRequestStatus.PENDING
        )
        if unseen_only:
            edges = [edge for edge in edges if edge.seen_at is None]
        return len(edges)

    async def mark_requests_seen(self, user_id: int) -> int:
        updated = await self._store.mark_seen(user_id)
        log.info("Marked %d friend request(s) seen for user %s", updated, user_id)
        return updated

    async def suggest_friends(self, user_id: int, limit: int = 5) -> list[tuple[int, int]]:
        """
        People you may know: `(user_id, mutual_friend_count)` pairs, most
        mutual friends first. Excludes the user, their friends, and anyone
        with a pending request to or from them.
        """
        friends = await self.get_accepted_friend_ids(user_id)
        if not friends:
            return []

        pending_edges, friend_edges = await asyncio.gather(
            touching_user(self._store, [user_id], FriendRequestStatus.PENDING),
            touching_user(self._store, friends, FriendRequestStatus.ACCEPTED),
        )
        excluded = {user_id, *friends}
        for edge in pending_edges:
            excluded.update((edge.requester_id, edge.recipient_id))

        mutual_links: set[tuple[int, int]] = set()
        for edge in friend_edges:
            if edge.requester_id in friends:
                link = (edge.requester_id, edge.recipient_id)
            elif edge.recipient_id in friends:
                link = (edge.recipient_id, edge.requester_id)
            else:
                continue
            if link[1] not in excluded:
                mutual_links.add(link)

        mutual_counts = Counter(candidate for _, candidate in mutual_links)

        ranked = sorted(mutual_counts.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit]
