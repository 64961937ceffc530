# src/gradeproof/api/v1/endpoints/client_video.py
"""Customer access to proof videos through short-lived tokens."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, status
from fastapi.responses import FileResponse

from gradeproof.api.v1.dependencies import (
    AccessTokenServiceDep,
    ClientIpDep,
    RateLimiterDep,
    SessionDep,
    UserAgentDep,
)
from gradeproof.api.v1.errors import ApiError
from gradeproof.core.security import email_domain, sanitize_submission_id, validate_partial_email
from gradeproof.core.settings import settings
from gradeproof.db.time import from_epoch
from gradeproof.models.access_log import ACCESS_TYPE_VERIFICATION, ACCESS_TYPE_VIDEO
from gradeproof.schemas.client import (
    AccessGrant,
    VerifiedSubmission,
    VerifySubmissionRequest,
    VerifySubmissionResponse,
)
from gradeproof.services.access_log import (
    AccessLogEntry,
    log_client_access,
    update_client_access_stats,
)
from gradeproof.services.submissions import (
    get_submission,
    resolve_upload_path,
    verify_submission_access,
    video_media_type,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/client", tags=["client"])

_VIDEO_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": "default-src 'self'",
    "X-Frame-Options": "DENY",
}


@router.post("/verify-submission", response_model=VerifySubmissionResponse)
def verify_submission(
    payload: VerifySubmissionRequest,
    db: SessionDep,
    token_service: AccessTokenServiceDep,
    rate_limiter: RateLimiterDep,
    client_ip: ClientIpDep,
    user_agent: UserAgentDep,
) -> VerifySubmissionResponse:
    """Verify a customer's submission number and issue a temporary access token.

    The customer proves ownership with the last four characters of the email
    local part. Every failure counts against the caller's IP.

    Raises:
        ApiError: With one of MISSING_PARAMETERS, RATE_LIMITED, INVALID_CAPTCHA,
            INVALID_SUBMISSION_ID, SUBMISSION_NOT_FOUND or EMAIL_VERIFICATION_FAILED.
    """
    started = time.monotonic()
    logger.info("Client verification attempt: %s from %s", payload.submission_id, client_ip)

    def _fail(
        status_code: int,
        code: str,
        message: str,
        reason: str,
        *,
        submission_id: str | None = None,
        domain: str | None = None,
        count_attempt: bool = True,
        **extra: object,
    ) -> ApiError:
        if count_attempt:
            rate_limiter.record_attempt(client_ip, success=False)
        log_client_access(
            db,
            AccessLogEntry(
                access_type=ACCESS_TYPE_VERIFICATION,
                access_granted=False,
                submission_id=submission_id or payload.submission_id,
                client_ip=client_ip,
                user_agent=user_agent,
                email_domain=domain,
                failure_reason=reason,
            ),
        )
        return ApiError(status_code, code, message, **extra)

    if not payload.submission_id or not payload.email_partial:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "MISSING_PARAMETERS",
            "Submission number and email are required",
        )

    limit = rate_limiter.check(client_ip)
    if not limit.allowed:
        raise _fail(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "RATE_LIMITED",
            limit.message or "Too many attempts",
            "Rate limited",
            count_attempt=False,
            retry_after_minutes=limit.minutes_left or settings.client_block_seconds // 60,
        )

    captcha = payload.simple_captcha
    if captcha is not None and captcha != settings.client_captcha_answer:
        raise _fail(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_CAPTCHA",
            "Security check failed",
            "Invalid captcha",
        )

    try:
        submission_id = sanitize_submission_id(payload.submission_id)
    except ValueError:
        raise _fail(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_SUBMISSION_ID",
            "Invalid submission number format",
            "Invalid submission ID format",
        ) from None

    access = verify_submission_access(db, submission_id)
    if not access.valid or access.submission is None:
        raise _fail(
            status.HTTP_404_NOT_FOUND,
            "SUBMISSION_NOT_FOUND",
            access.reason or "Submission number not found",
            access.reason or "Submission not found",
            submission_id=submission_id,
        )

    submission = access.submission
    domain = email_domain(submission.customer_email)
    if not validate_partial_email(submission.customer_email, payload.email_partial):
        raise _fail(
            status.HTTP_401_UNAUTHORIZED,
            "EMAIL_VERIFICATION_FAILED",
            "The last characters of your email do not match",
            "Invalid email verification",
            submission_id=submission_id,
            domain=domain,
        )

    issued = token_service.issue(submission_id, submission.customer_email, client_ip)
    rate_limiter.record_attempt(client_ip, success=True)

    log_client_access(
        db,
        AccessLogEntry(
            access_type=ACCESS_TYPE_VERIFICATION,
            access_granted=True,
            submission_id=submission_id,
            client_ip=client_ip,
            user_agent=user_agent,
            email_domain=domain,
            token_issued=issued.token,
            token_expires_at=from_epoch(issued.expires_at),
            session_id=issued.session_id,
        ),
    )
    update_client_access_stats(db, submission)

    logger.info(
        "Client verification successful: %s (%.0fms)",
        submission_id,
        (time.monotonic() - started) * 1000,
    )
    return VerifySubmissionResponse(
        message="Access granted to your proof video",
        data=AccessGrant(
            access_token=issued.token,
            expires_at=issued.expires_at_ms,
            expires_in_seconds=issued.valid_for_seconds,
            submission=VerifiedSubmission(
                id=submission_id,
                card_name=submission.card_name,
                grading_type=submission.grading_type,
                recording_date=submission.recording_timestamp,
                created_date=submission.created_at,
                video_duration=submission.video_duration,
            ),
        ),
    )


@router.get("/video/{token}")
def stream_client_video(
    token: str,
    db: SessionDep,
    token_service: AccessTokenServiceDep,
    client_ip: ClientIpDep,
    user_agent: UserAgentDep,
    submission_id: str | None = None,
) -> FileResponse:
    """Serve a proof video to the holder of a valid access token."""
    logger.info("Client video access: %s from %s", submission_id, client_ip)

    if not token or not submission_id:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "MISSING_PARAMETERS",
            "Token and submission ID are required",
        )

    try:
        sanitized = sanitize_submission_id(submission_id)
    except ValueError:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_SUBMISSION_ID",
            "Invalid submission ID",
        ) from None

    validation = token_service.validate(token, sanitized, client_ip)
    if not validation.valid or validation.session is None:
        log_client_access(
            db,
            AccessLogEntry(
                access_type=ACCESS_TYPE_VIDEO,
                access_granted=False,
                submission_id=sanitized,
                client_ip=client_ip,
                user_agent=user_agent,
                failure_reason=validation.message,
            ),
        )
        logger.warning("Invalid client video token for %s: %s", sanitized, validation.reason)
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            "INVALID_ACCESS_TOKEN",
            validation.message or "Invalid access token",
            reason=validation.reason.value if validation.reason else None,
        )

    submission = get_submission(db, sanitized)
    if submission is None or not submission.video_url:
        raise ApiError(status.HTTP_404_NOT_FOUND, "VIDEO_NOT_FOUND", "Video not found")

    if not submission.has_uploaded_video:
        raise ApiError(status.HTTP_404_NOT_FOUND, "VIDEO_NOT_AVAILABLE", "Video not available")

    try:
        path = resolve_upload_path(submission.video_url)
    except ValueError:
        path = None
    if path is None or not path.is_file():
        logger.error("Proof video file missing for %s: %s", sanitized, submission.video_url)
        raise ApiError(
            status.HTTP_404_NOT_FOUND,
            "VIDEO_FILE_NOT_FOUND",
            "Video file not found",
        )

    token_service.mark_used(token)
    log_client_access(
        db,
        AccessLogEntry(
            access_type=ACCESS_TYPE_VIDEO,
            access_granted=True,
            submission_id=sanitized,
            client_ip=client_ip,
            user_agent=user_agent,
            session_id=validation.session.session_id,
        ),
    )
    logger.info("Client video access granted: %s - %s", sanitized, submission.card_name)

    return FileResponse(path, media_type=video_media_type(path), headers=_VIDEO_HEADERS)
