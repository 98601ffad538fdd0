from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from focusgo.config import settings

engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def is_permission_denied(exc: BaseException) -> bool:
    """True for errors meaning "storage not configured for this user yet"."""
    if isinstance(exc, PermissionError):
        return True
    # Postgres insufficient_privilege, surfaced through the DBAPI wrapper
    return getattr(getattr(exc, "orig", None), "sqlstate", None) == "42501"
