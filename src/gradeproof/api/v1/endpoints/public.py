# src/gradeproof/api/v1/endpoints/public.py
"""Public read endpoints used by the video capture station."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from gradeproof.api.v1.dependencies import SessionDep
from gradeproof.api.v1.errors import ApiError
from gradeproof.schemas.submission import SubmissionOut, SubmissionResponse
from gradeproof.services.submissions import get_submission, resolve_upload_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/submission/{submission_id}", response_model=SubmissionResponse)
def read_submission(submission_id: str, db: SessionDep) -> SubmissionResponse:
    """Return the submission details an operator needs before recording."""
    submission = get_submission(db, submission_id)
    if submission is None:
        raise ApiError(
            status.HTTP_404_NOT_FOUND,
            "SUBMISSION_NOT_FOUND",
            "Submission not found",
        )

    logger.info("Submission found for %s: %s", submission_id, submission.card_name)
    return SubmissionResponse(
        submission=SubmissionOut.model_validate(submission),
        message="Submission details retrieved",
    )


@router.get("/qr/{submission_id}")
def read_qr_code(submission_id: str, db: SessionDep) -> FileResponse:
    """Serve the stored QR code image of a submission."""
    submission = get_submission(db, submission_id)
    if submission is None or not submission.qr_code_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="QR code not found")

    try:
        path = resolve_upload_path(submission.qr_code_path)
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="QR code not found"
        ) from err
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="QR code not found")

    return FileResponse(path, media_type="image/png")
