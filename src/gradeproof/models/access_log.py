# src/gradeproof/models/access_log.py
"""Audit trail of customer attempts to reach their proof videos."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gradeproof.db.session import Base
from gradeproof.db.time import utcnow

ACCESS_TYPE_VERIFICATION = "verification"
ACCESS_TYPE_VIDEO = "video_access"


class ClientAccessLog(Base):
    __tablename__ = "client_access_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    submission_id: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    email_domain: Mapped[str | None] = mapped_column(Text, nullable=True)
    access_type: Mapped[str] = mapped_column(String(32), nullable=False)
    access_granted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    token_issued: Mapped[str | None] = mapped_column(String(64), nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    session_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
