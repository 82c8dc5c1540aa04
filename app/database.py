"""Async engine, session factory and schema bootstrap."""
import logging
from typing import Any, AsyncIterator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.core.security import ROLE_PERMISSIONS

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # One shared connection so every session sees the same SQLite database
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    else:
        options.update(pool_size=settings.DATABASE_POOL_SIZE, max_overflow=settings.DATABASE_MAX_OVERFLOW)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Services decide when to commit; objects stay usable after a commit.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session dependency."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Create missing tables, then seed global roles and the default admin."""
    import app.models  # noqa: F401  register mappers

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if not settings.BOOTSTRAP_ON_STARTUP:
        return

    from app.services.bootstrap_service import ensure_default_admin, ensure_roles

    async with AsyncSessionLocal() as session:
        role_map = await ensure_roles(session, role_names=ROLE_PERMISSIONS.keys())
        await ensure_default_admin(session, role_map=role_map)
    logger.info("Seeded roles %s", ", ".join(sorted(role_map)))


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
