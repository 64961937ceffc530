"""Credential helpers for client video access."""
from __future__ import annotations

import hashlib
import hmac
import json
import re
from collections.abc import Mapping
from typing import Any

TOKEN_LENGTH = 32
PARTIAL_EMAIL_LENGTH = 4
MAX_SUBMISSION_ID_LENGTH = 50

_SUBMISSION_ID_DISALLOWED = re.compile(r"[^a-zA-Z0-9-]")
_EBML_MAGIC = b"\x1a\x45\xdf\xa3"


def keyed_token(secret: str, payload: Mapping[str, Any], length: int = TOKEN_LENGTH) -> str:
    """Return a truncated HMAC-SHA256 hex digest over a canonical JSON payload.

    Args:
        secret: Server-side signing key.
        payload: Values bound into the token. Serialized with sorted keys so the
            same payload always yields the same token.
        length: Number of hex characters to keep.

    Returns:
        The first `length` hex characters of the digest.
    """
    message = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
    return digest[:length]


def validate_partial_email(email: str | None, partial: str | None) -> bool:
    """Return True if `partial` matches the last four characters before the `@`.

    The comparison is case-insensitive. Local parts shorter than four characters
    can never be verified this way.
    """
    if not email or not partial or len(partial) != PARTIAL_EMAIL_LENGTH:
        return False

    parts = email.lower().split("@")
    if len(parts) != 2:
        return False

    username = parts[0]
    if len(username) < PARTIAL_EMAIL_LENGTH:
        return False

    return hmac.compare_digest(username[-PARTIAL_EMAIL_LENGTH:], partial.lower())


def sanitize_submission_id(submission_id: Any) -> str:
    """Strip everything but letters, digits and dashes from a submission id.

    Raises:
        ValueError: If the input is not a string or nothing usable remains.
    """
    if not submission_id or not isinstance(submission_id, str):
        raise ValueError("Invalid submission ID provided")

    sanitized = _SUBMISSION_ID_DISALLOWED.sub("", submission_id)
    if not sanitized or len(sanitized) > MAX_SUBMISSION_ID_LENGTH:
        raise ValueError("Invalid submission ID format")
    return sanitized


def email_domain(email: str | None) -> str | None:
    """Return the domain part of an email address, if any."""
    if not email or "@" not in email:
        return None
    return email.rsplit("@", 1)[1]


def upload_token(secret: str, submission_id: str, timestamp_ms: int) -> str:
    """Return the upload credential for a submission issued at `timestamp_ms`."""
    return keyed_token(
        secret,
        {"action": "upload", "submission_id": submission_id, "ts": timestamp_ms},
    )


def verify_upload_token(
    secret: str,
    submission_id: str,
    token: str,
    timestamp_ms: Any,
    *,
    now_ms: int,
    ttl_ms: int,
) -> str | None:
    """Check an upload credential.

    Returns:
        None if the token is valid, otherwise a short failure reason.
    """
    try:
        issued = int(timestamp_ms)
    except (TypeError, ValueError):
        return "Malformed timestamp"
    if now_ms - issued > ttl_ms:
        return "Token expired"
    expected = upload_token(secret, submission_id, issued)
    if not hmac.compare_digest(expected, str(token)):
        return "Invalid token signature"
    return None


def detect_video_extension(head: bytes) -> str | None:
    """Return the container extension implied by a file's leading bytes.

    Recognizes WebM/Matroska (EBML header) and ISO base media files
    (`ftyp` box), where the `qt  ` brand marks QuickTime. Anything else
    yields None.
    """
    if head[:4] == _EBML_MAGIC:
        return ".webm"
    if len(head) >= 12 and head[4:8] == b"ftyp":
        return ".mov" if head[8:12] == b"qt  " else ".mp4"
    return None
