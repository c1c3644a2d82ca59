from __future__ import annotations
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from .config import Settings

class Base(DeclarativeBase):
    pass

def make_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, echo=False, future=True)

def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def ensure_sqlite_schema(engine: AsyncEngine) -> None:
    # models must be registered on Base.metadata before create_all
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        result = await conn.execute(text("PRAGMA table_info(corrections_proposees);"))
        columns = {row[1] for row in result.fetchall()}
        if "status" not in columns:
            await conn.execute(
                text("ALTER TABLE corrections_proposees ADD COLUMN status VARCHAR(16) DEFAULT 'pending';")
            )
        await conn.execute(
            text(
                "UPDATE corrections_proposees SET status='pending' "
                "WHERE status IS NULL OR status='';"
            )
        )
