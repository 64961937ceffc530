"""Capability interface a platform-specific capture adapter implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from gradeproof.capture.upload import ProgressCallback, UploadResponse, UploadTransport

ChunkCallback = Callable[[bytes], None]

# Tried in order; the last entry is used when nothing is reported as supported.
CODEC_PREFERENCES: tuple[str, ...] = (
    "video/webm;codecs=vp8,opus",
    "video/webm",
    "video/mp4",
)


@dataclass(frozen=True)
class StreamConstraints:
    """Ideal capture settings requested from the camera."""

    width: int = 1280
    height: int = 720
    frame_rate: int = 30
    audio: bool = True


class MediaTrack(Protocol):
    def stop(self) -> None: ...


class MediaStream(Protocol):
    def get_tracks(self) -> Sequence[MediaTrack]: ...


class CaptureBackend(Protocol):
    """Camera, recorder and upload primitives used by the capture controller."""

    async def open_stream(self, constraints: StreamConstraints) -> MediaStream: ...

    def is_type_supported(self, mime_type: str) -> bool: ...

    async def start_recording(
        self,
        stream: MediaStream,
        *,
        mime_type: str,
        timeslice: float,
        on_chunk: ChunkCallback,
    ) -> Any: ...

    async def stop_recording(self, recorder: Any) -> None: ...

    async def upload_with_progress(
        self,
        url: str,
        payload: bytes,
        *,
        filename: str,
        content_type: str,
        fields: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResponse: ...


class BaseCaptureBackend(ABC):
    """Adapter base that sends uploads through `UploadTransport`.

    Subclasses supply the camera and recorder; `stop_recording` must return
    only after the recorder has delivered its final chunk.
    """

    def __init__(self, transport: UploadTransport | None = None) -> None:
        self.transport = transport or UploadTransport()

    @abstractmethod
    async def open_stream(self, constraints: StreamConstraints) -> MediaStream:
        """Open a combined video and audio stream.

        Raises:
            CameraUnavailableError: If the devices cannot be opened.
        """

    @abstractmethod
    def is_type_supported(self, mime_type: str) -> bool:
        """Return True if the recorder can produce `mime_type`."""

    @abstractmethod
    async def start_recording(
        self,
        stream: MediaStream,
        *,
        mime_type: str,
        timeslice: float,
        on_chunk: ChunkCallback,
    ) -> Any:
        """Start a chunked recorder and return its handle."""

    @abstractmethod
    async def stop_recording(self, recorder: Any) -> None:
        """Stop `recorder` after flushing its pending data."""

    async def upload_with_progress(
        self,
        url: str,
        payload: bytes,
        *,
        filename: str,
        content_type: str,
        fields: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResponse:
        return await self.transport.upload_with_progress(
            url,
            payload,
            filename=filename,
            content_type=content_type,
            fields=fields,
            on_progress=on_progress,
        )

    async def close(self) -> None:
        await self.transport.close()


def choose_mime_type(backend: CaptureBackend) -> str:
    """Return the first preferred recording format the backend supports."""
    for mime_type in CODEC_PREFERENCES:
        if backend.is_type_supported(mime_type):
            return mime_type
    return CODEC_PREFERENCES[-1]
