from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from cellarsnap.core.config import settings

engine = create_async_engine(settings.DB_URL.replace("psycopg2", "asyncpg"), pool_pre_ping=True)
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

async def get_db():
    async with SessionLocal() as session:
        yield session
