"""State machine driving one capture station from QR scan to uploaded video."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from gradeproof.capture.api_client import SubmissionApiClient
from gradeproof.capture.backend import (
    CaptureBackend,
    MediaStream,
    StreamConstraints,
    choose_mime_type,
)
from gradeproof.capture.errors import CaptureError, SubmissionApiError
from gradeproof.capture.qr import extract_submission_id, submission_id_from_url
from gradeproof.core.settings import settings
from gradeproof.db.time import utcnow
from gradeproof.schemas.submission import SubmissionOut, VideoInfo

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (CaptureError, OSError, RuntimeError, ValueError)


class CaptureState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    RECORDING = "recording"
    PROCESSING = "processing"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """Operator-facing message emitted by the controller."""

    level: NoticeLevel
    message: str
    code: str | None = None


class CaptureListener:
    """Receives controller events. Override the hooks a UI cares about."""

    def on_state_change(self, previous: CaptureState, current: CaptureState) -> None:
        pass

    def on_notice(self, notice: Notice) -> None:
        pass

    def on_timer(self, display: str) -> None:
        pass

    def on_upload_progress(self, percent: int) -> None:
        pass

    def on_submission_loaded(self, submission: SubmissionOut, qr_image: bytes | None) -> None:
        pass


@dataclass
class RecordingSession:
    """Transient state for one capture cycle of a single submission."""

    submission_id: str
    submission: SubmissionOut
    qr_image: bytes | None = None
    existing_video: VideoInfo | None = None
    stream: MediaStream | None = None
    recorder: Any = None
    mime_type: str | None = None
    chunks: list[bytes] = field(default_factory=list)
    started_at: float | None = None
    started_wall: datetime | None = None
    stopped_at: float | None = None

    @property
    def payload_size(self) -> int:
        return sum(len(chunk) for chunk in self.chunks)

    def elapsed(self, now: float) -> int:
        if self.started_at is None:
            return 0
        end = self.stopped_at if self.stopped_at is not None else now
        return max(0, int(end - self.started_at))


def _mmss(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


class CaptureController:
    """Drive camera, recorder and upload for one station.

    Every failure is caught here, reported as a `Notice` and followed by a
    return to the nearest stable state; no method raises for an expected
    capture problem.
    """

    def __init__(
        self,
        backend: CaptureBackend,
        api: SubmissionApiClient,
        *,
        listener: CaptureListener | None = None,
        clock: Callable[[], float] = time.monotonic,
        max_recording_seconds: int | None = None,
        max_upload_bytes: int | None = None,
        chunk_seconds: float | None = None,
        constraints: StreamConstraints | None = None,
        timer_interval: float = 1.0,
    ) -> None:
        self.backend = backend
        self.api = api
        self.listener = listener or CaptureListener()
        self._clock = clock
        self.max_recording_seconds = int(
            max_recording_seconds or settings.max_recording_seconds
        )
        self.max_upload_bytes = int(max_upload_bytes or settings.max_upload_bytes)
        self.chunk_seconds = float(chunk_seconds or settings.recording_chunk_seconds)
        self.constraints = constraints or StreamConstraints()
        self.timer_interval = timer_interval

        self.state = CaptureState.IDLE
        self.session: RecordingSession | None = None
        self.upload_progress = 0
        self._timer_task: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def chunk_count(self) -> int:
        return len(self.session.chunks) if self.session else 0

    def format_timer(self, elapsed: int) -> str:
        """Render elapsed time against the ceiling as `MM:SS / MM:SS`."""
        return f"{_mmss(elapsed)} / {_mmss(self.max_recording_seconds)}"

    # Submission binding

    async def load_from_qr(self, decoded_text: str) -> bool:
        """Bind the submission carried by a scanned QR code."""
        submission_id = extract_submission_id(decoded_text)
        if submission_id is None:
            self._notify(NoticeLevel.ERROR, "Invalid QR code", code="INVALID_QR")
            return False
        return await self.load_submission(submission_id)

    async def load_from_url(self, url: str) -> bool:
        """Bind the submission named in a page URL, if it names one."""
        submission_id = submission_id_from_url(url)
        if submission_id is None:
            return False
        return await self.load_submission(submission_id)

    async def load_submission(self, submission_id: str) -> bool:
        """Fetch a submission, open the camera and become ready to record."""
        submission_id = (submission_id or "").strip()
        if not submission_id:
            self._notify(NoticeLevel.WARNING, "Please enter a submission number")
            return False

        if self.state in (CaptureState.LOADING, CaptureState.RECORDING, CaptureState.UPLOADING):
            self._notify(
                NoticeLevel.WARNING,
                f"Cannot load a submission while {self.state.value}",
                code="BUSY",
            )
            return False

        self._generation += 1
        generation = self._generation
        await self._discard_session()
        self._set_state(CaptureState.LOADING)
        self._notify(NoticeLevel.INFO, f"Loading submission {submission_id}...")

        try:
            submission = await self.api.fetch_submission(submission_id)
        except SubmissionApiError as e:
            if generation != self._generation:
                return False
            logger.warning("Failed to load submission %s: %s", submission_id, e)
            self._notify(NoticeLevel.ERROR, f"Error: {e}", code="SUBMISSION_NOT_FOUND")
            self._set_state(CaptureState.IDLE)
            return False
        if generation != self._generation:
            return False

        session = RecordingSession(submission_id=submission.submission_id, submission=submission)

        session.qr_image = await self.api.fetch_qr_image(session.submission_id)
        if generation != self._generation:
            return False
        if session.qr_image is None:
            self._notify(NoticeLevel.INFO, "QR code not available, generate on demand")

        session.existing_video = await self.api.fetch_existing_video(session.submission_id)
        if generation != self._generation:
            return False
        if session.existing_video is not None:
            self._notify(
                NoticeLevel.WARNING,
                self._existing_video_message(session.existing_video),
                code="VIDEO_EXISTS",
            )

        self.session = session
        self.listener.on_submission_loaded(submission, session.qr_image)

        try:
            stream = await self.backend.open_stream(self.constraints)
        except _BACKEND_ERRORS as e:
            if generation != self._generation:
                return False
            logger.error("Camera unavailable for %s: %s", session.submission_id, e)
            self.session = None
            self._notify(
                NoticeLevel.ERROR,
                "Camera access error. Please allow camera and microphone access.",
                code="CAMERA_UNAVAILABLE",
            )
            self._set_state(CaptureState.IDLE)
            return False

        if generation != self._generation:
            self._stop_tracks(stream)
            return False

        session.stream = stream
        self._set_state(CaptureState.READY)
        self._notify(
            NoticeLevel.SUCCESS,
            f"Submission {session.submission_id} loaded - ready to record",
        )
        logger.info("Capture station bound to submission %s", session.submission_id)
        return True

    @staticmethod
    def _existing_video_message(video: VideoInfo) -> str:
        recorded = video.recorded_at.strftime("%Y-%m-%d %H:%M") if video.recorded_at else "unknown"
        return (
            f"A video already exists for this submission ({video.size_mb:.2f} MB, "
            f"recorded {recorded}). A new recording will replace it."
        )

    # Recording

    async def start_recording(self) -> bool:
        """Start the chunked recorder and the elapsed-time timer."""
        session = self.session
        if self.state is not CaptureState.READY or session is None or session.stream is None:
            self._notify(NoticeLevel.WARNING, "Load a submission before recording")
            return False

        session.chunks.clear()
        mime_type = choose_mime_type(self.backend)
        try:
            session.recorder = await self.backend.start_recording(
                session.stream,
                mime_type=mime_type,
                timeslice=self.chunk_seconds,
                on_chunk=self._on_chunk,
            )
        except _BACKEND_ERRORS as e:
            logger.error("Failed to start recording for %s: %s", session.submission_id, e)
            self._notify(NoticeLevel.ERROR, f"Could not start recording: {e}")
            return False

        session.mime_type = mime_type
        session.started_at = self._clock()
        session.started_wall = utcnow()
        session.stopped_at = None
        self._set_state(CaptureState.RECORDING)
        self._notify(NoticeLevel.INFO, "Recording in progress...")
        self.listener.on_timer(self.format_timer(0))
        self._timer_task = asyncio.create_task(self._run_timer())
        logger.info("Recording started for %s (%s)", session.submission_id, mime_type)
        return True

    def _on_chunk(self, chunk: bytes) -> None:
        if not chunk or self.session is None:
            return
        if self.state in (CaptureState.RECORDING, CaptureState.PROCESSING):
            self.session.chunks.append(chunk)

    async def _run_timer(self) -> None:
        while self.state is CaptureState.RECORDING:
            await asyncio.sleep(self.timer_interval)
            await self.tick()

    async def tick(self) -> int:
        """Publish elapsed time and stop the recording at the ceiling."""
        session = self.session
        if self.state is not CaptureState.RECORDING or session is None:
            return 0
        elapsed = session.elapsed(self._clock())
        self.listener.on_timer(self.format_timer(min(elapsed, self.max_recording_seconds)))
        if elapsed >= self.max_recording_seconds:
            await self.stop_recording(auto=True)
        return elapsed

    async def stop_recording(self, *, auto: bool = False) -> bool:
        """Stop the recorder; the collected chunks stay ready for upload."""
        session = self.session
        if self.state is not CaptureState.RECORDING or session is None:
            return False

        # Leave RECORDING first so a concurrent stop or tick is a no-op.
        self._set_state(CaptureState.PROCESSING)
        session.stopped_at = self._clock()
        await self._cancel_timer()

        recorder, session.recorder = session.recorder, None
        try:
            await self.backend.stop_recording(recorder)
        except _BACKEND_ERRORS as e:
            logger.error("Recorder did not stop cleanly for %s: %s", session.submission_id, e)

        if auto:
            self._notify(
                NoticeLevel.WARNING,
                "Recording stopped automatically at the "
                f"{_mmss(self.max_recording_seconds)} limit",
                code="AUTO_STOPPED",
            )
        else:
            self._notify(NoticeLevel.SUCCESS, "Recording finished")
        logger.info(
            "Recording stopped for %s after %ds (%d chunks, auto=%s)",
            session.submission_id,
            self.duration_seconds,
            len(session.chunks),
            auto,
        )
        return True

    @property
    def duration_seconds(self) -> int:
        if self.session is None:
            return 0
        return min(self.session.elapsed(self._clock()), self.max_recording_seconds)

    # Upload

    async def upload(self) -> bool:
        """Send the finished recording and report byte-level progress."""
        session = self.session
        if self.state is not CaptureState.PROCESSING or session is None:
            self._notify(NoticeLevel.WARNING, "No recording to upload")
            return False

        payload = b"".join(session.chunks)
        if not payload:
            self._notify(NoticeLevel.ERROR, "No video data recorded", code="EMPTY_VIDEO")
            return False
        if len(payload) > self.max_upload_bytes:
            self._notify(
                NoticeLevel.ERROR,
                f"Video too large ({len(payload) / 1024 / 1024:.1f} MB, maximum "
                f"{self.max_upload_bytes // (1024 * 1024)} MB)",
                code="VIDEO_TOO_LARGE",
            )
            return False

        content_type = (session.mime_type or "video/webm").split(";", 1)[0]
        extension = "mp4" if content_type == "video/mp4" else "webm"
        started = session.started_wall or utcnow()
        filename = f"{session.submission_id}-{int(started.timestamp() * 1000)}.{extension}"
        fields = {
            "duration": str(self.duration_seconds),
            "startTime": started.isoformat(),
        }

        self._set_state(CaptureState.UPLOADING)
        self._set_progress(0)
        self._notify(NoticeLevel.INFO, "Uploading...")

        try:
            grant = await self.api.fetch_upload_token(session.submission_id)
        except SubmissionApiError as e:
            if self.session is not session:
                return False
            logger.error("Upload token refused for %s: %s", session.submission_id, e)
            self._notify(NoticeLevel.ERROR, f"Upload not authorized: {e}", code="UPLOAD_FAILED")
            self._set_state(CaptureState.PROCESSING)
            return False
        if self.session is not session:
            return False

        try:
            response = await self.backend.upload_with_progress(
                self.api.upload_url(session.submission_id, grant),
                payload,
                filename=filename,
                content_type=content_type,
                fields=fields,
                on_progress=lambda loaded, total: self._on_upload_progress(
                    session, loaded, total
                ),
            )
        except _BACKEND_ERRORS as e:
            if self.session is not session:
                return False
            logger.error("Upload failed for %s: %s", session.submission_id, e)
            self._notify(NoticeLevel.ERROR, f"Upload failed: {e}", code="UPLOAD_FAILED")
            self._set_state(CaptureState.PROCESSING)
            return False

        if self.session is not session:
            return False

        if not response.success:
            message = response.message or f"Upload failed with status {response.status_code}"
            logger.warning(
                "Upload rejected for %s (%d): %s",
                session.submission_id,
                response.status_code,
                message,
            )
            self._notify(NoticeLevel.ERROR, f"Upload error: {message}", code="UPLOAD_REJECTED")
            self._set_state(CaptureState.PROCESSING)
            return False

        self._set_progress(100)
        self._set_state(CaptureState.UPLOADED)
        self._notify(NoticeLevel.SUCCESS, "Video uploaded successfully")
        logger.info("Uploaded %d bytes for %s", len(payload), session.submission_id)
        return True

    def _on_upload_progress(self, session: RecordingSession, loaded: int, total: int) -> None:
        # A reset may have dropped the session while bytes were still in flight.
        if self.session is not session or total <= 0:
            return
        self._set_progress(round(loaded * 100 / total))

    def _set_progress(self, percent: int) -> None:
        percent = max(0, min(100, percent))
        if percent != self.upload_progress or percent == 0:
            self.upload_progress = percent
            self.listener.on_upload_progress(percent)

    # Reset

    async def reset(self) -> None:
        """Release the camera, drop the recording and return to idle.

        Safe to call from any state, any number of times.
        """
        self._generation += 1
        await self._cancel_timer()
        await self._discard_session()
        self.upload_progress = 0
        self._set_state(CaptureState.IDLE)

    async def _discard_session(self) -> None:
        session, self.session = self.session, None
        if session is None:
            return
        recorder, session.recorder = session.recorder, None
        if recorder is not None:
            try:
                await self.backend.stop_recording(recorder)
            except _BACKEND_ERRORS as e:
                logger.warning("Recorder failed to stop during reset: %s", e)
        if session.stream is not None:
            self._stop_tracks(session.stream)
            session.stream = None
        session.chunks.clear()

    @staticmethod
    def _stop_tracks(stream: MediaStream) -> None:
        for track in stream.get_tracks():
            track.stop()

    async def _cancel_timer(self) -> None:
        task, self._timer_task = self._timer_task, None
        if task is None or task is asyncio.current_task() or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # Events

    def _set_state(self, state: CaptureState) -> None:
        previous = self.state
        if previous is state:
            return
        self.state = state
        logger.debug("Capture state %s -> %s", previous.value, state.value)
        self.listener.on_state_change(previous, state)

    def _notify(self, level: NoticeLevel, message: str, *, code: str | None = None) -> None:
        self.listener.on_notice(Notice(level=level, message=message, code=code))
