"""Async engine and session factory."""

from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from parcelsync.config import settings
from parcelsync.db.models import Base

engine: AsyncEngine = create_async_engine(settings.database_url, echo=settings.debug)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(db_engine: AsyncEngine | None = None) -> None:
    """Create all tables, and the directory of a file-backed SQLite database."""
    db_engine = db_engine or engine
    url = db_engine.url
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
