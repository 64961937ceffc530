# tests/v1/test_video.py
"""Tests for proof-video metadata and upload endpoints."""

import time
from pathlib import Path

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from gradeproof.core.security import upload_token
from gradeproof.core.settings import settings
from gradeproof.models import GradingRequest

WEBM = b"\x1a\x45\xdf\xa3webm-bytes"
MP4 = b"\x00\x00\x00\x18ftypisom\x00\x00\x02\x00mp4-bytes"
MOV = b"\x00\x00\x00\x14ftypqt  \x00\x00\x02\x00mov-bytes"


def _grant(client: TestClient, submission_id: str) -> dict:
    response = client.get(f"/api/video/upload-token/{submission_id}")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    return {"token": body["token"], "ts": str(body["timestamp"])}


def _upload(
    client: TestClient,
    submission_id: str,
    data: bytes,
    *,
    params: dict | None = None,
    filename: str | None = None,
    content_type: str = "video/webm",
    **fields,
):
    if params is None:
        params = _grant(client, submission_id)
    return client.post(
        f"/api/video/upload/{submission_id}",
        params=params,
        files={"video": (filename or f"{submission_id}-1.webm", data, content_type)},
        data=fields,
    )


class TestVideoInfo:
    def test_describes_stored_video(
        self, client: TestClient, submission_with_video: GradingRequest
    ):
        response = client.get(f"/api/video/{submission_with_video.submission_id}")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["video"]["file_size"] == 11
        assert body["video"]["duration"] == 42
        assert body["video"]["status"] == "uploaded"
        assert body["submission"]["card_name"] == "Charizard Holo"

    def test_no_video_yet(self, client: TestClient, submission: GradingRequest):
        response = client.get(f"/api/video/{submission.submission_id}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "VIDEO_NOT_FOUND"

    def test_unknown_submission(self, client: TestClient):
        response = client.get("/api/video/PSA000404")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "SUBMISSION_NOT_FOUND"

    def test_file_missing_on_disk(
        self,
        client: TestClient,
        submission_with_video: GradingRequest,
        upload_dir: Path,
    ):
        (upload_dir / submission_with_video.video_url).unlink()

        response = client.get(f"/api/video/{submission_with_video.submission_id}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "VIDEO_FILE_NOT_FOUND"


class TestVideoUpload:
    def test_stores_video_and_metadata(
        self,
        client: TestClient,
        db_session: Session,
        submission: GradingRequest,
        upload_dir: Path,
    ):
        response = _upload(
            client,
            submission.submission_id,
            WEBM,
            duration="37",
            startTime="2024-05-01T10:00:00+00:00",
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["success"] is True
        assert body["video"]["file_size"] == len(WEBM)
        assert body["video"]["duration"] == 37

        db_session.refresh(submission)
        assert submission.video_status == "uploaded"
        assert submission.video_url.startswith(f"videos/{submission.submission_id}-")
        assert submission.video_url.endswith(".webm")
        assert (upload_dir / submission.video_url).read_bytes() == WEBM
        assert submission.recording_timestamp is not None
        assert submission.recording_timestamp.year == 2024

    def test_replaces_previous_video(
        self,
        client: TestClient,
        db_session: Session,
        submission_with_video: GradingRequest,
        upload_dir: Path,
    ):
        previous = upload_dir / submission_with_video.video_url

        response = _upload(client, submission_with_video.submission_id, WEBM + b"second-take")

        assert response.status_code == status.HTTP_200_OK
        db_session.refresh(submission_with_video)
        assert not previous.exists()
        assert (upload_dir / submission_with_video.video_url).read_bytes() == WEBM + b"second-take"

    def test_empty_video(self, client: TestClient, submission: GradingRequest):
        response = _upload(client, submission.submission_id, b"")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "EMPTY_VIDEO"

    def test_too_large(
        self,
        client: TestClient,
        submission: GradingRequest,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(settings, "max_upload_bytes", 8)

        response = _upload(client, submission.submission_id, b"123456789")

        assert response.status_code == 413
        assert response.json()["code"] == "VIDEO_TOO_LARGE"

    def test_unknown_submission(self, client: TestClient):
        issued = int(time.time() * 1000)
        params = {"token": upload_token(settings.client_secret, "PSA000404", issued), "ts": issued}

        response = _upload(client, "PSA000404", WEBM, params=params)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "SUBMISSION_NOT_FOUND"

    @pytest.mark.parametrize(
        ("data", "suffix"),
        [(MP4, ".mp4"), (MOV, ".mov")],
    )
    def test_extension_follows_file_content(
        self,
        client: TestClient,
        db_session: Session,
        submission: GradingRequest,
        data: bytes,
        suffix: str,
    ):
        # Declared as WebM, stored under the detected container.
        response = _upload(client, submission.submission_id, data)

        assert response.status_code == status.HTTP_200_OK
        db_session.refresh(submission)
        assert submission.video_url.endswith(suffix)

    def test_rejects_non_video_file(
        self,
        client: TestClient,
        db_session: Session,
        submission_with_video: GradingRequest,
        upload_dir: Path,
    ):
        previous = submission_with_video.video_url

        response = _upload(
            client,
            submission_with_video.submission_id,
            b"<script>alert(1)</script>",
            filename="evil.html",
            content_type="text/html",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "INVALID_FILE_TYPE"
        db_session.refresh(submission_with_video)
        assert submission_with_video.video_url == previous
        assert (upload_dir / previous).read_bytes() == b"proof-video"

    def test_video_named_like_webm_but_not_one(
        self, client: TestClient, submission: GradingRequest
    ):
        response = _upload(client, submission.submission_id, b"not really a video")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "INVALID_FILE_TYPE"


class TestUploadToken:
    def test_issues_signed_token(self, client: TestClient, submission: GradingRequest):
        response = client.get(f"/api/video/upload-token/{submission.submission_id}")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["success"] is True
        assert body["token"] == upload_token(
            settings.client_secret, submission.submission_id, body["timestamp"]
        )
        assert body["valid_for_ms"] == 24 * 60 * 60 * 1000
        assert body["expires_at"] == body["timestamp"] + body["valid_for_ms"]

    def test_unknown_submission(self, client: TestClient):
        response = client.get("/api/video/upload-token/PSA000404")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "SUBMISSION_NOT_FOUND"

    def test_upload_without_token(
        self,
        client: TestClient,
        db_session: Session,
        submission_with_video: GradingRequest,
        upload_dir: Path,
    ):
        previous = submission_with_video.video_url

        response = _upload(client, submission_with_video.submission_id, WEBM, params={})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "AUTH_REQUIRED"
        db_session.refresh(submission_with_video)
        assert submission_with_video.video_url == previous
        assert (upload_dir / previous).read_bytes() == b"proof-video"

    def test_upload_with_forged_token(self, client: TestClient, submission: GradingRequest):
        params = {"token": "0" * 32, "ts": str(int(time.time() * 1000))}

        response = _upload(client, submission.submission_id, WEBM, params=params)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        body = response.json()
        assert body["code"] == "INVALID_TOKEN"
        assert "signature" in body["message"]

    def test_token_is_bound_to_its_submission(
        self, client: TestClient, make_submission, submission: GradingRequest
    ):
        other = make_submission()
        params = _grant(client, other.submission_id)

        response = _upload(client, submission.submission_id, WEBM, params=params)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_expired_token(self, client: TestClient, submission: GradingRequest):
        issued = int(time.time() * 1000) - (settings.upload_token_ttl_seconds + 60) * 1000
        params = {
            "token": upload_token(settings.client_secret, submission.submission_id, issued),
            "ts": str(issued),
        }

        response = _upload(client, submission.submission_id, WEBM, params=params)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert "expired" in response.json()["message"]
