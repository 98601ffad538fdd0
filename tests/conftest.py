import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from focusgo.database import get_db
from focusgo.dependencies import get_current_user
from focusgo.main import app
from focusgo.models import Base
from focusgo.models.user import User
from focusgo.services.timer_registry import TimerRegistry


class FakeRedis:
    """In-memory Redis mock for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._hashes: dict[str, dict[str, str]] = {}
        self._ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._store[key] = str(value)
        if ex:
            self._ttls[key] = ex

    async def incr(self, key: str) -> int:
        val = int(self._store.get(key, "0")) + 1
        self._store[key] = str(val)
        return val

    async def expire(self, key: str, seconds: int) -> None:
        self._ttls[key] = seconds

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self._hashes.get(key, {}))

    async def hset(self, key: str, field: str, value: str) -> int:
        self._hashes.setdefault(key, {})[field] = str(value)
        return 1

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class ManualTicker:
    """Ticker whose subscriptions only fire when the test says so."""

    def __init__(self):
        self.subscriptions: list["ManualSubscription"] = []

    def subscribe(self, callback, interval):
        subscription = ManualSubscription(callback, interval)
        self.subscriptions.append(subscription)
        return subscription

    @property
    def active(self) -> list["ManualSubscription"]:
        return [s for s in self.subscriptions if not s.cancelled]

    def fire(self) -> None:
        for subscription in self.active:
            subscription.callback()


class ManualSubscription:
    def __init__(self, callback, interval):
        self.callback = callback
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Epoch-milliseconds clock that only moves when advanced."""

    def __init__(self, start: datetime | None = None):
        start = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        self.now_ms = int(start.timestamp() * 1000)

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


@pytest.fixture
def ticker() -> ManualTicker:
    return ManualTicker()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
async def db_engine(tmp_path):
    # File-backed so the timer's background writes get their own connection
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'focusgo.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    user = User(
        id=uuid.uuid4(),
        email="test@example.com",
        display_name="Test User",
        auth_provider="google",
        auth_provider_id="google_test_123",
        settings_json={},
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def registry(session_factory, fake_redis, ticker) -> TimerRegistry:
    return TimerRegistry(session_factory, redis_client=fake_redis, ticker=ticker)


@pytest.fixture
async def client(
    session_factory, test_user: User, fake_redis: FakeRedis, registry: TimerRegistry
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_current_user():
        return test_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.state.redis = fake_redis
    app.state.timers = registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await registry.shutdown()
    app.dependency_overrides.clear()
