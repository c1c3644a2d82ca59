import asyncio
import json

import pytest

sqlalchemy = pytest.importorskip("sqlalchemy")
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from tutor.corrections import (
    CorrectionMemo,
    load_official_correction,
    parse_artifact,
    set_proposal_status,
)
from tutor.models import Base, OfficialCorrection, ProposedCorrection


async def _setup_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    return engine, Session


def test_duplicate_proposal_is_ignored():
    async def _run():
        engine, Session = await _setup_session()
        memo = CorrectionMemo(Session)
        first = {"socratic_path": [{"ia_question": "What is f'(x)?", "expected_answer_keywords": ["2x"]}]}
        assert await memo.record("ex-1", first) is True
        assert await memo.record("ex-1", {"explanation": "other"}) is False
        async with Session() as s:
            rows = (await s.execute(select(ProposedCorrection))).scalars().all()
        assert len(rows) == 1
        assert rows[0].status == "pending"
        assert parse_artifact(rows[0].proposed_correction_json) == first
        await engine.dispose()
    asyncio.run(_run())


def test_record_failure_is_logged_not_raised(caplog):
    async def _run():
        engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
        memo = CorrectionMemo(async_sessionmaker(engine, expire_on_commit=False))
        # no tables: the insert fails
        assert await memo.record("ex-1", {"explanation": "x"}) is False
        await engine.dispose()
    asyncio.run(_run())
    assert "proposed_correction_failed" in caplog.text


def test_official_correction_lookup():
    async def _run():
        engine, Session = await _setup_session()
        async with Session() as s:
            s.add(OfficialCorrection(exercise_id="ex-1", correction="f'(x) = 2x"))
            await s.commit()
            assert await load_official_correction(s, "ex-1") == "f'(x) = 2x"
            assert await load_official_correction(s, "ex-2") is None
        await engine.dispose()
    asyncio.run(_run())


def test_proposal_status_update():
    async def _run():
        engine, Session = await _setup_session()
        await CorrectionMemo(Session).record("ex-1", {"explanation": "x"})
        async with Session() as s:
            row = await set_proposal_status(s, "ex-1", "approved")
            assert row.status == "approved"
            assert await set_proposal_status(s, "missing", "rejected") is None
            with pytest.raises(ValueError):
                await set_proposal_status(s, "ex-1", "published")
        await engine.dispose()
    asyncio.run(_run())


def test_parse_artifact_rejects_garbage():
    assert parse_artifact(None) is None
    assert parse_artifact("not json") is None
    assert parse_artifact(json.dumps([1, 2])) is None
    assert parse_artifact('{"explanation": "x"}') == {"explanation": "x"}
