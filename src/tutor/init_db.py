import asyncio
from pathlib import Path
from sqlalchemy import text
from .config import load_settings
from .db import ensure_sqlite_schema, make_engine
from .models import Base

async def main():
    settings = load_settings()
    is_sqlite = settings.database_url.startswith("sqlite")
    if is_sqlite:
        Path("./data").mkdir(parents=True, exist_ok=True)

    engine = make_engine(settings)
    if is_sqlite:
        await ensure_sqlite_schema(engine)
        async with engine.begin() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL;"))
            await conn.execute(text("PRAGMA synchronous=NORMAL;"))
    else:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(main())
