"""Schemas for the customer-facing video access flow."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class VerifySubmissionRequest(BaseModel):
    """Credentials a customer presents to view their proof video.

    Fields are optional at the schema level so that missing values are
    reported with the API's own error code instead of a validation error.
    """

    submission_id: str | None = Field(None, description="Submission number")
    email_partial: str | None = Field(
        None, description="Last four characters of the email before the @"
    )
    simple_captcha: str | None = Field(None, description="Answer to the human check")


class VerifiedSubmission(BaseModel):
    id: str
    card_name: str
    grading_type: str
    recording_date: datetime | None = None
    created_date: datetime | None = None
    video_duration: int | None = None


class AccessGrant(BaseModel):
    access_token: str
    expires_at: int = Field(..., description="Expiry as epoch milliseconds")
    expires_in_seconds: int
    submission: VerifiedSubmission


class VerifySubmissionResponse(BaseModel):
    success: bool = True
    message: str
    data: AccessGrant


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str
