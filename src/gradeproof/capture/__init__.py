"""Capture-station client: camera-agnostic recording and upload of proof videos."""

from gradeproof.capture.api_client import ApiClientConfig, SubmissionApiClient
from gradeproof.capture.backend import (
    CODEC_PREFERENCES,
    BaseCaptureBackend,
    CaptureBackend,
    StreamConstraints,
)
from gradeproof.capture.controller import (
    CaptureController,
    CaptureListener,
    CaptureState,
    Notice,
    NoticeLevel,
    RecordingSession,
)
from gradeproof.capture.errors import (
    CameraUnavailableError,
    CaptureError,
    SubmissionApiError,
    UploadError,
)
from gradeproof.capture.upload import UploadResponse, UploadTransport

__all__ = [
    "ApiClientConfig",
    "BaseCaptureBackend",
    "CODEC_PREFERENCES",
    "CameraUnavailableError",
    "CaptureBackend",
    "CaptureController",
    "CaptureError",
    "CaptureListener",
    "CaptureState",
    "Notice",
    "NoticeLevel",
    "RecordingSession",
    "StreamConstraints",
    "SubmissionApiClient",
    "SubmissionApiError",
    "UploadError",
    "UploadResponse",
    "UploadTransport",
]
