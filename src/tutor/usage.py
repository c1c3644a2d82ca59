from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import DEFAULT_USAGE_LIMITS
from .errors import RateLimitedError
from .models import AiUsageLog, utcnow

logger = logging.getLogger(__name__)

WINDOW = dt.timedelta(hours=24)


async def count_recent_calls(
    s: AsyncSession,
    *,
    user_id: str,
    call_type: str,
    now: dt.datetime | None = None,
) -> int:
    since = (now or utcnow()) - WINDOW
    result = await s.execute(
        select(func.count(AiUsageLog.id)).where(
            AiUsageLog.user_id == user_id,
            AiUsageLog.call_type == call_type,
            AiUsageLog.request_timestamp >= since,
        )
    )
    return int(result.scalar_one() or 0)


@dataclass
class UsageLimiter:
    """Daily per-user quota on AI calls.

    Counting is fail-open: if the usage table cannot be read the call is
    allowed and the failure is logged. Recording never raises.
    """

    sessionmaker: async_sessionmaker[AsyncSession]
    user_id: str
    limits: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_USAGE_LIMITS))

    async def ensure_allowed(self, call_type: str, count: int = 1) -> None:
        limit = self.limits.get(call_type)
        if limit is None:
            return
        try:
            async with self.sessionmaker() as s:
                used = await count_recent_calls(s, user_id=self.user_id, call_type=call_type)
        except Exception:
            logger.exception(
                "usage_check_failed user_id=%s call_type=%s", self.user_id, call_type
            )
            return
        remaining = max(0, limit - used)
        if count > remaining:
            logger.info(
                "usage_limit_reached user_id=%s call_type=%s used=%s limit=%s requested=%s",
                self.user_id,
                call_type,
                used,
                limit,
                count,
            )
            if count > 1 and remaining:
                raise RateLimitedError(
                    f"{count} {call_type} calls requested but only {remaining} left for today"
                )
            raise RateLimitedError(f"daily limit of {limit} {call_type} calls reached")

    async def record(self, call_type: str, count: int = 1) -> None:
        try:
            async with self.sessionmaker() as s:
                now = utcnow()
                s.add_all(
                    AiUsageLog(user_id=self.user_id, call_type=call_type, request_timestamp=now)
                    for _ in range(count)
                )
                await s.commit()
        except Exception:
            logger.exception(
                "usage_record_failed user_id=%s call_type=%s", self.user_id, call_type
            )
