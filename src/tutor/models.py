from __future__ import annotations
import datetime as dt
from sqlalchemy import String, Integer, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from .db import Base

UTC = dt.timezone.utc
def utcnow() -> dt.datetime:
    return dt.datetime.now(tz=UTC)

PROPOSAL_STATUSES = ("pending", "approved", "rejected")

class OfficialCorrection(Base):
    __tablename__ = "corrections"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exercise_id: Mapped[str] = mapped_column(String(128), unique=True)  # key from the curriculum content
    correction: Mapped[str] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class ProposedCorrection(Base):
    __tablename__ = "corrections_proposees"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exercise_id: Mapped[str] = mapped_column(String(128), unique=True)
    proposed_correction_json: Mapped[str] = mapped_column(Text)  # {"socratic_path": [...]} | {"explanation": "..."}
    status: Mapped[str] = mapped_column(String(16), default="pending")  # pending | approved | rejected
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class AiUsageLog(Base):
    __tablename__ = "ai_usage_logs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    call_type: Mapped[str] = mapped_column(String(32))  # EXPLANATION | SOCRATIC_VALIDATION | OCR
    request_timestamp: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_ai_usage_user_type_ts", "user_id", "call_type", "request_timestamp"),)
