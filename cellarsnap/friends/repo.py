import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Literal, Protocol, Sequence, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cellarsnap.db.models import FriendRequest, FriendRequestStatus
from cellarsnap.friends.errors import (
    DuplicateActiveEdge,
    PolicyDenied,
    StoreFailure,
    looks_like_policy_denial,
    sqlstate_of,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

Role = Literal["requester", "recipient"]


@dataclass(frozen=True)
class FriendRequestEdge:
    id: str
    requester_id: int
    recipient_id: int
    status: FriendRequestStatus
    created_at: datetime
    responded_at: datetime | None = None
    seen_at: datetime | None = None

    def other_party(self, user_id: int) -> int:
        return self.recipient_id if self.requester_id == user_id else self.requester_id

    def involves(self, user_id: int) -> bool:
        return user_id in (self.requester_id, self.recipient_id)


class FriendRequestStore(Protocol):
    """Narrow repository over the friend_requests table."""

    async def insert(self, requester_id: int, recipient_id: int) -> FriendRequestEdge: ...

    async def get(self, request_id: str) -> FriendRequestEdge | None: ...

    async def update_status_if(
        self,
        request_id: str,
        expected_status: FriendRequestStatus,
        new_status: FriendRequestStatus,
        expected_recipient: int,
    ) -> int: ...

    async def delete_where(
        self,
        *,
        requester_id: int | None = None,
        recipient_id: int | None = None,
        statuses: Iterable[FriendRequestStatus] | None = None,
        request_id: str | None = None,
    ) -> int: ...

    async def query_pair(
        self, requester_id: int, recipient_id: int, limit: int
    ) -> list[FriendRequestEdge]: ...

    async def query_edges_touching_any(
        self, user_ids: Iterable[int], role: Role, status: FriendRequestStatus
    ) -> list[FriendRequestEdge]: ...

    async def mark_seen(self, recipient_id: int) -> int: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_edge(row: FriendRequest) -> FriendRequestEdge:
    return FriendRequestEdge(
        id=row.id,
        requester_id=row.requester_id,
        recipient_id=row.recipient_id,
        status=FriendRequestStatus(row.status),
        created_at=row.created_at,
        responded_at=row.responded_at,
        seen_at=row.seen_at,
    )


def _status_values(statuses: Iterable[FriendRequestStatus]) -> list[str]:
    return [FriendRequestStatus(s).value for s in statuses]


class SqlFriendRequestStore:
    """
    SQLAlchemy implementation of `FriendRequestStore`.

    Each call opens its own short-lived session, so independent calls can be
    awaited concurrently with `asyncio.gather`. Every call is bounded by
    `timeout` seconds. Driver errors are translated into the engine's error
    kinds and never retried here.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout: float = 5.0,
    ):
        self._session_factory = session_factory
        self._timeout = timeout

    async def _run(self, op: str, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            try:
                return await asyncio.wait_for(fn(session), timeout=self._timeout)
            except asyncio.TimeoutError as exc:
                log.error("friend_requests.%s timed out after %.1fs", op, self._timeout)
                raise StoreFailure(f"Store call {op} timed out.") from exc
            except IntegrityError as exc:
                message = str(exc.orig)
                if "uq_friend_requests_active_pair" in message or "friend_requests.pair_low" in message:
                    raise DuplicateActiveEdge(
                        "An active friend request already exists for this pair."
                    ) from exc
                log.error("friend_requests.%s integrity error: %s", op, message)
                raise StoreFailure(message) from exc
            except DBAPIError as exc:
                message = str(exc.orig)
                if looks_like_policy_denial(message, sqlstate_of(exc.orig)):
                    raise PolicyDenied(message) from exc
                log.error("friend_requests.%s failed: %s", op, message, exc_info=True)
                raise StoreFailure(message) from exc
            except SQLAlchemyError as exc:
                log.error("friend_requests.%s failed: %s", op, exc, exc_info=True)
                raise StoreFailure(str(exc)) from exc

    async def insert(self, requester_id: int, recipient_id: int) -> FriendRequestEdge:
        async def op(session: AsyncSession) -> FriendRequestEdge:
            row = FriendRequest(
                requester_id=requester_id,
                recipient_id=recipient_id,
                pair_low=min(requester_id, recipient_id),
                pair_high=max(requester_id, recipient_id),
                status=FriendRequestStatus.PENDING.value,
                created_at=_now(),
            )
            session.add(row)
            await session.commit()
            return _to_edge(row)

        return await self._run("insert", op)

    async def get(self, request_id: str) -> FriendRequestEdge | None:
        async def op(session: AsyncSession) -> FriendRequestEdge | None:
            row = await session.get(FriendRequest, request_id)
            return _to_edge(row) if row else None

        return await self._run("get", op)

    async def update_status_if(
        self,
        request_id: str,
        expected_status: FriendRequestStatus,
        new_status: FriendRequestStatus,
        expected_recipient: int,
    ) -> int:
        async def op(session: AsyncSession) -> int:
            now = _now()
            result = await session.execute(
                update(FriendRequest)
                .where(
                    FriendRequest.id == request_id,
                    FriendRequest.status == FriendRequestStatus(expected_status).value,
                    FriendRequest.recipient_id == expected_recipient,
                )
                .values(
                    status=FriendRequestStatus(new_status).value,
                    responded_at=now,
                    seen_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount or 0

        return await self._run("update_status_if", op)

    async def delete_where(
        self,
        *,
        requester_id: int | None = None,
        recipient_id: int | None = None,
        statuses: Iterable[FriendRequestStatus] | None = None,
        request_id: str | None = None,
    ) -> int:
        conditions = []
        if request_id is not None:
            conditions.append(FriendRequest.id == request_id)
        if requester_id is not None:
            conditions.append(FriendRequest.requester_id == requester_id)
        if recipient_id is not None:
            conditions.append(FriendRequest.recipient_id == recipient_id)
        if statuses is not None:
            conditions.append(FriendRequest.status.in_(_status_values(statuses)))
        if not conditions:
            raise ValueError("delete_where requires at least one predicate")

        async def op(session: AsyncSession) -> int:
            result = await session.execute(
                delete(FriendRequest)
                .where(*conditions)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount or 0

        return await self._run("delete_where", op)

    async def query_pair(
        self, requester_id: int, recipient_id: int, limit: int
    ) -> list[FriendRequestEdge]:
        async def op(session: AsyncSession) -> list[FriendRequestEdge]:
            result = await session.execute(
                select(FriendRequest)
                .where(
                    FriendRequest.requester_id == requester_id,
                    FriendRequest.recipient_id == recipient_id,
                )
                .order_by(FriendRequest.created_at.desc())
                .limit(limit)
            )
            return [_to_edge(row) for row in result.scalars().all()]

        return await self._run("query_pair", op)

    async def query_edges_touching_any(
        self, user_ids: Iterable[int], role: Role, status: FriendRequestStatus
    ) -> list[FriendRequestEdge]:
        ids: Sequence[int] = sorted(set(user_ids))
        if not ids:
            return []
        column = FriendRequest.requester_id if role == "requester" else FriendRequest.recipient_id

        async def op(session: AsyncSession) -> list[FriendRequestEdge]:
            result = await session.execute(
                select(FriendRequest)
                .where(
                    column.in_(ids),
                    FriendRequest.status == FriendRequestStatus(status).value,
                )
                .order_by(FriendRequest.created_at.desc())
            )
            return [_to_edge(row) for row in result.scalars().all()]

        return await self._run("query_edges_touching_any", op)

    async def mark_seen(self, recipient_id: int) -> int:
        async def op(session: AsyncSession) -> int:
            result = await session.execute(
                update(FriendRequest)
                .where(
                    FriendRequest.recipient_id == recipient_id,
                    FriendRequest.status == FriendRequestStatus.PENDING.value,
                    FriendRequest.seen_at.is_(None),
                )
                .values(seen_at=_now())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount or 0

        return await self._run("mark_seen", op)


async def touching_user(
    store: FriendRequestStore, user_ids: Iterable[int], status: FriendRequestStatus
) -> list[FriendRequestEdge]:
    """Edges with `status` where either endpoint is in `user_ids`, deduplicated."""
    ids = list(user_ids)
    as_requester, as_recipient = await asyncio.gather(
        store.query_edges_touching_any(ids, "requester", status),
        store.query_edges_touching_any(ids, "recipient", status),
    )
    seen: set[str] = set()
    edges: list[FriendRequestEdge] = []
    for edge in [*as_requester, *as_recipient]:
        if edge.id in seen:
            continue
        seen.add(edge.id)
        edges.append(edge)
    return edges
