import os

os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from cellarsnap.api.deps import get_friend_store
from cellarsnap.db.models import Base, User
from cellarsnap.db.session import get_db
from cellarsnap.friends import (
    FriendRequestStateMachine,
    RelationshipQueryService,
    SqlFriendRequestStore,
    VisibilityResolver,
)
from cellarsnap.utils.auth.tokens import create_token
from cellarsnap.utils.infrastructure.rate_limiter import RateGovernor

ALICE, BOB, CAROL, DAVE, ERIN, FRANK = 1, 2, 3, 4, 5, 6


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cellarsnap.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async with factory() as session:
        for user_id, name in [
            (ALICE, "Alice"),
            (BOB, "Bob"),
            (CAROL, "Carol"),
            (DAVE, "Dave"),
            (ERIN, "Erin"),
            (FRANK, "Frank"),
        ]:
            session.add(User(id=user_id, display_name=name, email=f"{name.lower()}@example.com"))
        await session.commit()

    yield factory
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlFriendRequestStore(session_factory, timeout=5.0)


@pytest.fixture
def machine(store):
    return FriendRequestStateMachine(store)


@pytest.fixture
def relationships(store):
    return RelationshipQueryService(store)


@pytest.fixture
def resolver(relationships):
    return VisibilityResolver(relationships)


@pytest.fixture
async def make_friends(machine):
    async def _make(a: int, b: int) -> str:
        sent = await machine.request_friendship(a, b)
        await machine.request_friendship(b, a)
        return sent.request_id

    return _make


def auth_headers(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token({'sub': str(user_id)})}"}


@pytest.fixture
async def client(store, session_factory):
    from cellarsnap.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_friend_store] = lambda: store
    app.dependency_overrides[get_db] = override_get_db
    app.state.rate_governor = RateGovernor()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
