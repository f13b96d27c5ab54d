import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cellarsnap.core.config import settings
from cellarsnap.api.errors import register_exception_handlers
from cellarsnap.api.friends import router as friends_router
from cellarsnap.api.users import router as users_router
from cellarsnap.api.entries import router as entries_router
from cellarsnap.api import health_router
from cellarsnap.db.session import engine
from cellarsnap.utils.infrastructure.rate_limiter import build_rate_governor
from cellarsnap.utils.infrastructure.redis_pool import close_redis

log = logging.getLogger("cellarsnap")
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("CellarSnap API starting (rate limit backend=%s)", settings.RATE_LIMIT_BACKEND)
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(title="CellarSnap API", lifespan=lifespan)
# One limiter table per process, shared by every request handler.
app.state.rate_governor = build_rate_governor()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
)

register_exception_handlers(app)

app.include_router(health_router.router)
app.include_router(friends_router)
app.include_router(users_router)
app.include_router(entries_router)
