"""Error envelope shared by the client-facing endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Failure reported to clients as `{success: false, code, message}`.

    The code is stable and machine-readable so UIs can tailor messaging;
    `extra` carries additional fields such as `retry_after_minutes`.
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        **extra: Any,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "code": self.code,
            "message": self.message,
        }
        payload.update(self.extra)
        return payload


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render an `ApiError` as JSON."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
