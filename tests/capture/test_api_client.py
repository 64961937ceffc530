# tests/capture/test_api_client.py
import httpx
import pytest

from gradeproof.capture.api_client import ApiClientConfig, SubmissionApiClient, UploadGrant
from gradeproof.capture.errors import SubmissionApiError

SUBMISSION = {
    "submission_id": "PSA1",
    "customer_email": "jane.doe@example.com",
    "card_name": "Blastoise",
    "grading_type": "standard",
    "card_source": "collection",
    "status": "received",
    "video_status": "pending",
    "created_at": "2024-05-01T10:00:00+00:00",
}


def _api(handler) -> SubmissionApiClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    config = ApiClientConfig(
        base_url="http://test", timeout_seconds=5.0, qr_timeout_seconds=5.0
    )
    return SubmissionApiClient(config, client=client)


@pytest.mark.asyncio
async def test_fetch_submission():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/public/submission/PSA1"
        return httpx.Response(200, json={"success": True, "submission": SUBMISSION})

    submission = await _api(handler).fetch_submission("PSA1")

    assert submission.submission_id == "PSA1"
    assert submission.card_name == "Blastoise"


@pytest.mark.asyncio
async def test_fetch_submission_surfaces_server_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404,
            json={"success": False, "code": "SUBMISSION_NOT_FOUND", "message": "Submission not found"},
        )

    with pytest.raises(SubmissionApiError) as exc_info:
        await _api(handler).fetch_submission("PSA404")

    assert str(exc_info.value) == "Submission not found"
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_fetch_submission_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(SubmissionApiError, match="Could not reach"):
        await _api(handler).fetch_submission("PSA1")


@pytest.mark.asyncio
async def test_fetch_submission_unsuccessful_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "Archived"})

    with pytest.raises(SubmissionApiError, match="Archived"):
        await _api(handler).fetch_submission("PSA1")


@pytest.mark.asyncio
async def test_fetch_qr_image():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/public/qr/PSA1"
        return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

    assert await _api(handler).fetch_qr_image("PSA1") == b"\x89PNG"


@pytest.mark.asyncio
async def test_fetch_qr_image_missing_or_slow():
    def missing(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "QR code not found"})

    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    assert await _api(missing).fetch_qr_image("PSA1") is None
    assert await _api(slow).fetch_qr_image("PSA1") is None


@pytest.mark.asyncio
async def test_fetch_existing_video():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/video/PSA1"
        return httpx.Response(
            200,
            json={
                "success": True,
                "video": {
                    "file_size": 2 * 1024 * 1024,
                    "duration": 30,
                    "recorded_at": "2024-05-01T10:00:00+00:00",
                },
            },
        )

    video = await _api(handler).fetch_existing_video("PSA1")

    assert video is not None
    assert video.size_mb == 2.0
    assert video.duration == 30


@pytest.mark.asyncio
async def test_fetch_existing_video_absent():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"success": False, "code": "VIDEO_NOT_FOUND"})

    assert await _api(handler).fetch_existing_video("PSA1") is None


def test_upload_url_quotes_id():
    api = SubmissionApiClient(
        ApiClientConfig(base_url="http://test", timeout_seconds=1.0, qr_timeout_seconds=1.0)
    )
    assert api.upload_url("PSA 1/2") == "/api/video/upload/PSA%201%2F2"


def test_upload_url_carries_grant():
    api = SubmissionApiClient(
        ApiClientConfig(base_url="http://test", timeout_seconds=1.0, qr_timeout_seconds=1.0)
    )
    url = api.upload_url("PSA1", UploadGrant("f" * 32, 1700000000000))

    assert url == f"/api/video/upload/PSA1?token={'f' * 32}&ts=1700000000000"


@pytest.mark.asyncio
async def test_fetch_upload_token():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/video/upload-token/PSA1"
        return httpx.Response(
            200,
            json={
                "success": True,
                "token": "f" * 32,
                "timestamp": 1700000000000,
                "expires_at": 1700086400000,
                "valid_for_ms": 86400000,
            },
        )

    grant = await _api(handler).fetch_upload_token("PSA1")

    assert grant == UploadGrant("f" * 32, 1700000000000)


@pytest.mark.asyncio
async def test_fetch_upload_token_refused():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404,
            json={"success": False, "code": "SUBMISSION_NOT_FOUND", "message": "Submission not found"},
        )

    with pytest.raises(SubmissionApiError, match="Submission not found") as exc_info:
        await _api(handler).fetch_upload_token("PSA404")

    assert exc_info.value.status_code == 404
