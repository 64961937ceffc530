"""Exceptions raised by the capture client."""

from __future__ import annotations


class CaptureError(RuntimeError):
    """Base exception for capture-station failures.

    The controller converts every `CaptureError` into an operator notice and
    returns to the nearest stable state.
    """


class CameraUnavailableError(CaptureError):
    """Raised when the camera or microphone cannot be opened."""


class SubmissionApiError(CaptureError):
    """Raised when submission metadata cannot be fetched."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UploadError(CaptureError):
    """Raised when the upload transfer itself fails (network, timeout)."""
