import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    # SQLite connections are cheap and bound to a worker thread; don't pool them.
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo, poolclass=NullPool)
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)
