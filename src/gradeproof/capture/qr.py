"""Decoding submission identifiers from QR payloads and page URLs."""

from __future__ import annotations

import json
import re
from urllib.parse import parse_qs, unquote, urlsplit

_ID_PARAM = re.compile(r"id=([^&#\s]+)")
DIRECT_ID_PREFIX = "PSA"


def _id_param(text: str) -> str | None:
    match = _ID_PARAM.search(text)
    return unquote(match.group(1)) if match else None


def extract_submission_id(decoded_text: str) -> str | None:
    """Return the submission id carried by a scanned QR code.

    Three payload shapes are printed on order slips: a JSON object with a
    `submission_id` key, a recording-page URL with an `id` (or
    `submission_id`) query parameter, and the bare id itself.
    """
    text = decoded_text.strip()
    if not text:
        return None

    if "submission_id" in text:
        try:
            data = json.loads(text)
        except ValueError:
            return _id_param(text)
        if isinstance(data, dict) and data.get("submission_id"):
            return str(data["submission_id"])
        return None

    if "video-record" in text:
        return _id_param(text)

    if text.startswith(DIRECT_ID_PREFIX):
        return text

    return None


def submission_id_from_url(url: str) -> str | None:
    """Return the `submission_id` (or `id`) query parameter of a page URL."""
    query = urlsplit(url).query if "?" in url else url.lstrip("?")
    params = parse_qs(query)
    for key in ("submission_id", "id"):
        values = params.get(key)
        if values and values[0].strip():
            return values[0].strip()
    return None
