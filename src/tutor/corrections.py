from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import PROPOSAL_STATUSES, OfficialCorrection, ProposedCorrection

logger = logging.getLogger(__name__)


def _artifact_json(artifact: Any) -> str:
    return json.dumps(artifact, ensure_ascii=False)


def parse_artifact(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        val = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return val if isinstance(val, dict) else None


async def load_official_correction(s: AsyncSession, exercise_id: str) -> str | None:
    row = (
        await s.execute(
            select(OfficialCorrection.correction)
            .where(OfficialCorrection.exercise_id == exercise_id)
            .limit(1)
        )
    ).scalar_one_or_none()
    return row or None


async def set_proposal_status(s: AsyncSession, exercise_id: str, status: str) -> ProposedCorrection | None:
    if status not in PROPOSAL_STATUSES:
        raise ValueError(f"status must be one of {', '.join(PROPOSAL_STATUSES)}")
    row = (
        await s.execute(select(ProposedCorrection).where(ProposedCorrection.exercise_id == exercise_id))
    ).scalar_one_or_none()
    if row is None:
        return None
    row.status = status
    await s.commit()
    return row


class CorrectionMemo:
    """Keeps AI-generated paths/explanations as proposed corrections for human review.

    ``record`` never raises: a proposal that already exists for the exercise
    is the expected outcome of a repeat visit and is ignored silently; any
    other failure is logged.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def record(self, exercise_id: str, artifact: dict[str, Any]) -> bool:
        try:
            async with self._sessionmaker() as s:
                s.add(
                    ProposedCorrection(
                        exercise_id=exercise_id,
                        proposed_correction_json=_artifact_json(artifact),
                        status="pending",
                    )
                )
                try:
                    await s.commit()
                except IntegrityError:
                    await s.rollback()
                    logger.debug("proposed_correction_exists exercise_id=%s", exercise_id)
                    return False
        except Exception:
            logger.exception("proposed_correction_failed exercise_id=%s", exercise_id)
            return False
        logger.info("proposed_correction_recorded exercise_id=%s", exercise_id)
        return True
