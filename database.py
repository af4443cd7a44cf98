from typing import Optional

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for the booking store.

    In-memory SQLite needs a single shared connection, otherwise every
    session would see its own empty database.
    """
    if url.startswith("sqlite") and (url.endswith("://") or ":memory:" in url):
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=echo, future=True)


_engine: Optional[AsyncEngine] = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.database_url, echo=settings.db_echo)
    return _engine


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    # Importing models registers the appointments table on the metadata
    import models  # noqa: F401

    async with (engine or get_engine()).begin() as conn:
        # This creates the tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)


def session_factory(engine: Optional[AsyncEngine] = None) -> sessionmaker:
    return sessionmaker(
        engine or get_engine(), class_=AsyncSession, expire_on_commit=False
    )
