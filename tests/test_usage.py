import asyncio
import datetime as dt

import pytest

sqlalchemy = pytest.importorskip("sqlalchemy")
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from tutor.errors import RateLimitedError
from tutor.models import AiUsageLog, Base, utcnow
from tutor.usage import UsageLimiter, count_recent_calls


async def _setup_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    return engine, Session


def test_limit_reached_raises_rate_limited():
    async def _run():
        engine, Session = await _setup_session()
        limiter = UsageLimiter(Session, "u1", {"EXPLANATION": 2})
        await limiter.ensure_allowed("EXPLANATION")
        await limiter.record("EXPLANATION")
        await limiter.record("EXPLANATION")
        with pytest.raises(RateLimitedError):
            await limiter.ensure_allowed("EXPLANATION")
        # other users and call types are counted separately
        await UsageLimiter(Session, "u2", {"EXPLANATION": 2}).ensure_allowed("EXPLANATION")
        await limiter.ensure_allowed("OCR")
        await engine.dispose()
    asyncio.run(_run())


def test_batch_request_must_fit_remaining_quota():
    async def _run():
        engine, Session = await _setup_session()
        limiter = UsageLimiter(Session, "u1", {"OCR": 3})
        await limiter.record("OCR", 2)
        await limiter.ensure_allowed("OCR", 1)
        with pytest.raises(RateLimitedError) as exc:
            await limiter.ensure_allowed("OCR", 2)
        assert "only 1 left" in str(exc.value)
        await engine.dispose()
    asyncio.run(_run())


def test_old_calls_fall_out_of_the_window():
    async def _run():
        engine, Session = await _setup_session()
        async with Session() as s:
            s.add(AiUsageLog(user_id="u1", call_type="OCR", request_timestamp=utcnow() - dt.timedelta(hours=25)))
            s.add(AiUsageLog(user_id="u1", call_type="OCR", request_timestamp=utcnow() - dt.timedelta(hours=1)))
            await s.commit()
            assert await count_recent_calls(s, user_id="u1", call_type="OCR") == 1
        await engine.dispose()
    asyncio.run(_run())


def test_check_fails_open_when_usage_table_is_missing(caplog):
    async def _run():
        engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
        limiter = UsageLimiter(async_sessionmaker(engine), "u1", {"OCR": 1})
        await limiter.ensure_allowed("OCR")
        await limiter.record("OCR")
        await engine.dispose()
    asyncio.run(_run())
    assert "usage_check_failed" in caplog.text
    assert "usage_record_failed" in caplog.text
