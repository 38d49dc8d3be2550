from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from meetspace import models  # noqa: F401  registers the tables on SQLModel.metadata
from meetspace.config import DATABASE_URL, SQL_ECHO


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite") and (":memory:" in url or url.endswith("://")):
        # One shared connection, otherwise every session sees an empty database
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=echo)


# Create the Async Engine
engine = build_engine(DATABASE_URL, echo=SQL_ECHO)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(bind: AsyncEngine = engine) -> None:
    async with bind.begin() as conn:
        # This creates the tables (and overlap guards) if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session
