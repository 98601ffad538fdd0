import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
import sentry_sdk
from fastapi import FastAPI
from redis.exceptions import RedisError
from sqlalchemy import text

from focusgo.config import settings
from focusgo.database import async_session, engine
from focusgo.services.timer_registry import TimerRegistry

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Sentry
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.2 if settings.ENVIRONMENT == "production" else 1.0,
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: verify DB connection and connect Redis
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))

    app.state.redis = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    try:
        await app.state.redis.ping()
    except (RedisError, OSError) as exc:
        # Preferences fall back to defaults and the AI limit is not enforced
        logger.warning("Redis unavailable, continuing without it: %s", exc)
        await app.state.redis.close()
        app.state.redis = None

    app.state.timers = TimerRegistry(async_session, redis_client=app.state.redis)

    yield

    # Shutdown
    await app.state.timers.shutdown()
    if app.state.redis is not None:
        await app.state.redis.close()
    await engine.dispose()


app = FastAPI(
    title="FocusGo API",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

_cors_origins = [
    "http://localhost:4200",
    "https://focusgo.app",
    "https://www.focusgo.app",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from focusgo.middleware.error_handler import register_error_handlers  # noqa: E402

register_error_handlers(app)

# Routers
from focusgo.routers.categories import router as categories_router  # noqa: E402
from focusgo.routers.coach import router as coach_router  # noqa: E402
from focusgo.routers.sessions import router as sessions_router  # noqa: E402
from focusgo.routers.timer import router as timer_router  # noqa: E402

app.include_router(timer_router)
app.include_router(sessions_router)
app.include_router(categories_router)
app.include_router(coach_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
