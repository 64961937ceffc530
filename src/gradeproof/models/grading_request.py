# src/gradeproof/models/grading_request.py
"""SQLAlchemy model for customer grading submissions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gradeproof.db.session import Base
from gradeproof.db.time import utcnow

VIDEO_STATUS_PENDING = "pending"
VIDEO_STATUS_UPLOADED = "uploaded"


class GradingRequest(Base):
    """A customer's grading order together with its proof-video state."""

    __tablename__ = "grading_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    submission_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    customer_email: Mapped[str] = mapped_column(Text, nullable=False)

    card_name: Mapped[str] = mapped_column(Text, nullable=False)
    card_series: Mapped[str | None] = mapped_column(Text, nullable=True)
    card_year: Mapped[str | None] = mapped_column(String(8), nullable=True)
    card_number: Mapped[str | None] = mapped_column(Text, nullable=True)
    grading_type: Mapped[str] = mapped_column(Text, nullable=False)
    card_source: Mapped[str] = mapped_column(Text, nullable=False, default="collection")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=VIDEO_STATUS_PENDING
    )
    video_file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    video_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recording_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    qr_code_path: Mapped[str | None] = mapped_column(Text, nullable=True)

    client_access_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    client_access_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_client_access: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def has_uploaded_video(self) -> bool:
        """Return True once a proof video has been stored for this submission."""
        return bool(self.video_url) and self.video_status == VIDEO_STATUS_UPLOADED
