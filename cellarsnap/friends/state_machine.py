import asyncio
import logging
from dataclasses import dataclass

from cellarsnap.db.models import ACTIVE_STATUSES, FriendRequestStatus
from cellarsnap.friends.errors import (
    Conflict,
    DuplicateActiveEdge,
    Forbidden,
    FriendGraphError,
    NotFound,
    PolicyDenied,
    StoreFailure,
    ValidationFailed,
)
from cellarsnap.friends.repo import FriendRequestEdge, FriendRequestStore
from cellarsnap.friends.resolution import HISTORY_LIMIT, resolve_edge

log = logging.getLogger(__name__)

# One retry after losing an optimistic race; anything beyond is reported.
MAX_RESOLUTION_ATTEMPTS = 2

DELETE_PERMISSION_MESSAGE = (
    "Friend removal/cancel requires delete permission on friend_requests for both "
    "parties. Add the delete policy to the store, then retry."
)


@dataclass(frozen=True)
class FriendRequestResult:
    status: FriendRequestStatus
    request_id: str
    changed: bool = True


class _Superseded(Exception):
    """The row we meant to transition was changed by someone else first."""


class FriendRequestStateMachine:
    """
    Owns every write transition of a friend request edge.

    The store gives no multi-statement atomicity, so each operation is a
    short sequence of guarded single-statement calls. Store failures are
    raised as-is; the caller owns retries. Repeating any operation after a
    failure is safe.
    """

    def __init__(self, store: FriendRequestStore, *, history_limit: int = HISTORY_LIMIT):
        self._store = store
        self._history_limit = history_limit

    async def request_friendship(
        self, requester_id: int, recipient_id: int | None
    ) -> FriendRequestResult:
        if recipient_id is None:
            raise ValidationFailed("Recipient required.")
        if recipient_id == requester_id:
            raise ValidationFailed("Cannot friend yourself.")

        attempt = 1
        while True:
            try:
                return await self._request_once(requester_id, recipient_id)
            except (_Superseded, DuplicateActiveEdge) as exc:
                if attempt >= MAX_RESOLUTION_ATTEMPTS:
                    raise Conflict(
                        "Friend request changed while it was being processed. Please retry.",
                        details={"requester_id": requester_id, "recipient_id": recipient_id},
                    ) from exc
                log.info(
                    "Friend request %s -> %s raced with a concurrent change, re-resolving",
                    requester_id, recipient_id,
                )
                attempt += 1

    async def _request_once(self, requester_id: int, recipient_id: int) -> FriendRequestResult:
        reverse_rows, forward_rows = await asyncio.gather(
            self._store.query_pair(recipient_id, requester_id, self._history_limit),
            self._store.query_pair(requester_id, recipient_id, self._history_limit),
        )
        reverse = resolve_edge(reverse_rows, self._history_limit)
        if reverse is not None and reverse.status in ACTIVE_STATUSES:
            return await self._accept_reverse(reverse, requester_id, recipient_id)

        forward = resolve_edge(forward_rows, self._history_limit)
        if forward is not None and forward.status in ACTIVE_STATUSES:
            return FriendRequestResult(forward.status, forward.id, changed=False)

        if forward is not None and forward.status == FriendRequestStatus.DECLINED:
            # Terminal rows are not updatable; recreate instead of reviving.
            try:
                await self._store.delete_where(
                    requester_id=requester_id,
                    recipient_id=recipient_id,
                    statuses=[FriendRequestStatus.DECLINED],
                )
            except PolicyDenied as exc:
                log.warning(
                    "Could not clear declined requests %s -> %s (%s); inserting a new one anyway",
                    requester_id, recipient_id, exc.message,
                )

        created = await self._store.insert(requester_id, recipient_id)
        log.info(
            "Friend request %s created: %s -> %s", created.id, requester_id, recipient_id
        )
        return FriendRequestResult(FriendRequestStatus.PENDING, created.id)

    async def _accept_reverse(
        self, reverse: FriendRequestEdge, requester_id: int, recipient_id: int
    ) -> FriendRequestResult:
        changed = False
        if reverse.status == FriendRequestStatus.PENDING:
            affected = await self._store.update_status_if(
                reverse.id,
                FriendRequestStatus.PENDING,
                FriendRequestStatus.ACCEPTED,
                expected_recipient=requester_id,
            )
            if not affected:
                raise _Superseded(reverse.id)
            changed = True
            log.info(
                "Friend request %s accepted: %s and %s are now friends",
                reverse.id, reverse.requester_id, requester_id,
            )

        # Stray active duplicates in our own direction.
        await self._store.delete_where(
            requester_id=requester_id,
            recipient_id=recipient_id,
            statuses=ACTIVE_STATUSES,
        )
        return FriendRequestResult(FriendRequestStatus.ACCEPTED, reverse.id, changed=changed)

    async def _load_for_party(self, request_id: str) -> FriendRequestEdge:
        row = await self._store.get(request_id)
        if row is None:
            raise NotFound("Request not found.", details={"request_id": request_id})
        return row

    async def decline_request(self, recipient_id: int, request_id: str) -> FriendRequestResult:
        row = await self._load_for_party(request_id)
        if row.recipient_id != recipient_id:
            raise Forbidden("Not authorized.")
        if row.status != FriendRequestStatus.PENDING:
            raise Conflict(f"Cannot decline a {row.status.value} request.")

        affected = await self._store.update_status_if(
            row.id,
            FriendRequestStatus.PENDING,
            FriendRequestStatus.DECLINED,
            expected_recipient=recipient_id,
        )
        if not affected:
            raise Conflict("Request could not be declined.")

        log.info("Friend request %s declined by user %s", row.id, recipient_id)
        return FriendRequestResult(FriendRequestStatus.DECLINED, row.id)

    async def delete_or_unfriend(self, actor_id: int, request_id: str) -> FriendRequestResult:
        """
        Cancel a pending request, unfriend, or drop a declined row.

        Pending/accepted rows remove every active row of the pair in both
        directions (two concurrent deletes). If either delete fails the whole
        operation fails, even though the other side may already be gone.
        """
        row = await self._load_for_party(request_id)
        if not row.involves(actor_id):
            raise Forbidden("Not authorized.")

        if row.status in ACTIVE_STATUSES:
            outcomes = await asyncio.gather(
                self._store.delete_where(
                    requester_id=row.requester_id,
                    recipient_id=row.recipient_id,
                    statuses=ACTIVE_STATUSES,
                ),
                self._store.delete_where(
                    requester_id=row.recipient_id,
                    recipient_id=row.requester_id,
                    statuses=ACTIVE_STATUSES,
                ),
                return_exceptions=True,
            )
            self._raise_for_failed_deletes(row, outcomes)
            log.info(
                "Friend request %s (%s) removed by user %s; pair %s/%s cleared",
                row.id, row.status.value, actor_id, row.requester_id, row.recipient_id,
            )
        else:
            try:
                await self._store.delete_where(request_id=row.id)
            except PolicyDenied as exc:
                raise PolicyDenied(
                    DELETE_PERMISSION_MESSAGE, details={"request_id": row.id}
                ) from exc
            log.info("Declined request %s deleted by user %s", row.id, actor_id)

        return FriendRequestResult(row.status, row.id)

    @staticmethod
    def _raise_for_failed_deletes(row: FriendRequestEdge, outcomes: list) -> None:
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, FriendGraphError):
                raise outcome

        failures = [outcome for outcome in outcomes if isinstance(outcome, FriendGraphError)]
        if not failures:
            return

        details = {
            "request_id": row.id,
            "partially_applied": len(failures) < len(outcomes),
        }
        log.error(
            "Unfriend of request %s failed (%d of %d deletes): %s",
            row.id, len(failures), len(outcomes), failures[0].message,
        )
        denied = next((f for f in failures if isinstance(f, PolicyDenied)), None)
        if denied is not None:
            raise PolicyDenied(DELETE_PERMISSION_MESSAGE, details=details) from denied
        raise StoreFailure(
            f"Friend removal did not complete: {failures[0].message}", details=details
        ) from failures[0]
