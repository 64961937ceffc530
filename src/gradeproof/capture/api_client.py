"""HTTP client for the submission read endpoints used by the capture station."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

import httpx
from pydantic import ValidationError

from gradeproof.capture.errors import SubmissionApiError
from gradeproof.core.settings import settings
from gradeproof.schemas.submission import SubmissionOut, UploadTokenResponse, VideoInfo

logger = logging.getLogger(__name__)

HTTP_OK = 200


@dataclass(frozen=True)
class ApiClientConfig:
    """Immutable configuration for submission API calls."""

    base_url: str
    timeout_seconds: float
    qr_timeout_seconds: float


@dataclass(frozen=True)
class UploadGrant:
    """Signed permission to upload a video for one submission."""

    token: str
    timestamp: int


def load_api_client_config() -> ApiClientConfig:
    """Build configuration object from global settings."""

    return ApiClientConfig(
        base_url=settings.capture_api_base_url,
        timeout_seconds=float(settings.capture_http_timeout_seconds),
        qr_timeout_seconds=float(settings.qr_fetch_timeout_seconds),
    )


def _message(payload: Any, default: str) -> str:
    if isinstance(payload, Mapping):
        message = payload.get("message") or payload.get("detail")
        if message:
            return str(message)
    return default


class SubmissionApiClient:
    """Single-attempt calls to the submission, QR and video read endpoints.

    Nothing is retried: the operator sees every failure and decides.
    """

    def __init__(
        self,
        config: ApiClientConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or load_api_client_config()
        self._client = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    @staticmethod
    def _path_id(submission_id: str) -> str:
        return quote(submission_id, safe="")

    def upload_url(self, submission_id: str, grant: UploadGrant | None = None) -> str:
        url = f"/api/video/upload/{self._path_id(submission_id)}"
        if grant is not None:
            url += "?" + urlencode({"token": grant.token, "ts": grant.timestamp})
        return url

    async def fetch_upload_token(self, submission_id: str) -> UploadGrant:
        """Ask the server to sign an upload for a submission.

        Raises:
            SubmissionApiError: If the token cannot be obtained.
        """
        client = await self._ensure_client()
        path = f"/api/video/upload-token/{self._path_id(submission_id)}"
        try:
            response = await client.get(path)
        except httpx.HTTPError as exc:
            raise SubmissionApiError(f"Could not reach upload service: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code != HTTP_OK:
            raise SubmissionApiError(
                _message(payload, f"Upload token refused: {response.status_code}"),
                status_code=response.status_code,
            )
        try:
            issued = UploadTokenResponse.model_validate(payload)
        except ValidationError as exc:
            raise SubmissionApiError(f"Malformed upload token payload: {exc}") from exc
        return UploadGrant(token=issued.token, timestamp=issued.timestamp)

    async def fetch_submission(self, submission_id: str) -> SubmissionOut:
        """Fetch submission metadata.

        Raises:
            SubmissionApiError: On network failure, a non-2xx answer, an
                unsuccessful payload or a malformed submission.
        """
        client = await self._ensure_client()
        path = f"/api/public/submission/{self._path_id(submission_id)}"
        try:
            response = await client.get(path)
        except httpx.HTTPError as exc:
            raise SubmissionApiError(f"Could not reach submission service: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code != HTTP_OK:
            raise SubmissionApiError(
                _message(payload, f"Submission not found: {response.status_code}"),
                status_code=response.status_code,
            )
        if not isinstance(payload, Mapping) or not payload.get("success"):
            raise SubmissionApiError(_message(payload, "Error while loading submission"))

        try:
            return SubmissionOut.model_validate(payload.get("submission"))
        except ValidationError as exc:
            raise SubmissionApiError(f"Malformed submission payload: {exc}") from exc

    async def fetch_qr_image(self, submission_id: str) -> bytes | None:
        """Return the PNG QR code of a submission, or None if unavailable.

        The request is bounded by the QR timeout; a slow or missing image is
        not an error for the capture flow.
        """
        client = await self._ensure_client()
        path = f"/api/public/qr/{self._path_id(submission_id)}"
        try:
            response = await client.get(
                path, timeout=httpx.Timeout(self.config.qr_timeout_seconds)
            )
        except httpx.TimeoutException:
            logger.warning("Timed out loading QR code for %s", submission_id)
            return None
        except httpx.HTTPError as exc:
            logger.warning("Failed to load QR code for %s: %s", submission_id, exc)
            return None

        if response.status_code != HTTP_OK or not response.content:
            logger.warning("QR code not found for %s (%d)", submission_id, response.status_code)
            return None
        return response.content

    async def fetch_existing_video(self, submission_id: str) -> VideoInfo | None:
        """Return metadata of an already uploaded video, if there is one."""
        client = await self._ensure_client()
        path = f"/api/video/{self._path_id(submission_id)}"
        try:
            response = await client.get(path)
        except httpx.HTTPError as exc:
            logger.debug("Existing video check failed for %s: %s", submission_id, exc)
            return None

        if response.status_code != HTTP_OK:
            return None
        try:
            payload = response.json()
        except ValueError:
            return None
        if not isinstance(payload, Mapping) or not payload.get("success"):
            return None
        if not payload.get("video"):
            return None
        try:
            return VideoInfo.model_validate(payload["video"])
        except ValidationError:
            logger.debug("Ignoring malformed video payload for %s", submission_id)
            return None

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None and self._owns_client:
                await self._client.aclose()
            self._client = None
