"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .client import (
    AccessGrant,
    ErrorResponse,
    VerifiedSubmission,
    VerifySubmissionRequest,
    VerifySubmissionResponse,
)
from .submission import (
    SubmissionOut,
    SubmissionResponse,
    VideoInfo,
    VideoInfoResponse,
    VideoOwner,
    VideoUploadResponse,
)

__all__ = [
    "AccessGrant", "ErrorResponse", "VerifiedSubmission",
    "VerifySubmissionRequest", "VerifySubmissionResponse",
    "SubmissionOut", "SubmissionResponse",
    "VideoInfo", "VideoInfoResponse", "VideoOwner", "VideoUploadResponse",
]
