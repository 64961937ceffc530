"""Schemas describing submissions and their proof videos."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SubmissionOut(BaseModel):
    """Public view of a grading submission shown to the capture operator."""

    submission_id: str
    customer_email: str
    card_name: str
    card_series: str | None = None
    card_year: str | None = None
    card_number: str | None = None
    grading_type: str
    card_source: str
    status: str
    video_status: str | None = None
    comments: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubmissionResponse(BaseModel):
    success: bool = True
    submission: SubmissionOut
    message: str | None = None


class VideoInfo(BaseModel):
    """Metadata of a stored proof video."""

    submission_id: str | None = None
    status: str | None = None
    file_size: int = Field(..., description="Size of the stored file in bytes")
    duration: int | None = Field(None, description="Recorded duration in seconds")
    recorded_at: datetime | None = None
    video_url: str | None = None

    @property
    def size_mb(self) -> float:
        return self.file_size / 1024 / 1024


class VideoOwner(BaseModel):
    customer_email: str
    card_name: str
    grading_type: str

    model_config = ConfigDict(from_attributes=True)


class VideoInfoResponse(BaseModel):
    success: bool = True
    video: VideoInfo
    submission: VideoOwner | None = None


class VideoUploadResponse(BaseModel):
    success: bool = True
    message: str
    video: VideoInfo


class UploadTokenResponse(BaseModel):
    success: bool = True
    token: str
    timestamp: int
    expires_at: int
    valid_for_ms: int
