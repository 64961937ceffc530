"""Multipart upload of recorded video with byte-level progress reporting."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from gradeproof.capture.errors import UploadError
from gradeproof.core.settings import settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

HTTP_OK_MIN = 200
HTTP_OK_MAX = 299


@dataclass(frozen=True)
class UploadResponse:
    """Server answer to an upload attempt."""

    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return HTTP_OK_MIN <= self.status_code <= HTTP_OK_MAX

    @property
    def success(self) -> bool:
        """True if the server accepted the video."""
        if not self.ok:
            return False
        if isinstance(self.body, Mapping):
            return bool(self.body.get("success", True))
        return True

    @property
    def message(self) -> str | None:
        if isinstance(self.body, Mapping):
            message = self.body.get("message") or self.body.get("detail")
            return str(message) if message else None
        return None


class UploadTransport:
    """Send a recorded payload as multipart form data over httpx.

    The multipart body is encoded once and streamed in fixed-size slices so
    that progress can be reported as bytes leave the client.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        slice_bytes: int | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()
        self.base_url = base_url if base_url is not None else settings.capture_api_base_url
        self.timeout_seconds = float(timeout_seconds or settings.capture_http_timeout_seconds)
        self.slice_bytes = max(1, int(slice_bytes or settings.upload_slice_bytes))

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=httpx.Timeout(self.timeout_seconds),
                )
        return self._client

    async def upload_with_progress(
        self,
        url: str,
        payload: bytes,
        *,
        filename: str,
        content_type: str = "video/webm",
        fields: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResponse:
        """POST `payload` as the `video` part of a multipart form.

        Args:
            url: Upload endpoint, absolute or relative to the base URL.
            payload: Recorded video bytes.
            filename: Filename announced for the video part.
            content_type: MIME type of the video part.
            fields: Extra form fields sent alongside the video.
            on_progress: Called with (bytes sent, total bytes) after each slice.

        Returns:
            The HTTP status and parsed JSON body. Non-2xx answers are returned,
            not raised, so callers can surface the server's message.

        Raises:
            UploadError: If the request could not be completed.
        """
        client = await self._ensure_client()
        request = client.build_request(
            "POST",
            url,
            data=dict(fields or {}),
            files={"video": (filename, payload, content_type)},
        )
        body = request.read()
        total = len(body)
        slice_bytes = self.slice_bytes

        async def _stream() -> AsyncIterator[bytes]:
            sent = 0
            for start in range(0, total, slice_bytes):
                piece = body[start:start + slice_bytes]
                yield piece
                sent += len(piece)
                if on_progress is not None:
                    on_progress(sent, total)

        headers = {
            "Content-Type": request.headers["Content-Type"],
            "Content-Length": str(total),
        }
        endpoint = request.url.path
        logger.info("Uploading %d bytes to %s", total, endpoint)
        try:
            response = await client.post(url, content=_stream(), headers=headers)
        except httpx.HTTPError as exc:
            raise UploadError(f"Network error during upload: {exc}") from exc

        try:
            parsed = response.json()
        except ValueError:
            parsed = None

        logger.info("Upload to %s finished with status %d", endpoint, response.status_code)
        return UploadResponse(status_code=response.status_code, body=parsed)

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None and self._owns_client:
                await self._client.aclose()
            self._client = None
