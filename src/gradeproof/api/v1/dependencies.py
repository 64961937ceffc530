"""Shared API dependencies for client access and common functionality."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from gradeproof.db.session import get_db
from gradeproof.services.access_tokens import AccessTokenService, get_access_token_service
from gradeproof.services.rate_limit import RateLimiter, get_rate_limiter

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_access_token_service_dep() -> AccessTokenService:
    return get_access_token_service()


def get_rate_limiter_dep() -> RateLimiter:
    return get_rate_limiter()


def get_client_ip(request: Request) -> str:
    """Return the address of the calling client.

    Args:
        request: Incoming request

    Returns:
        The peer host, or "unknown" when the transport does not expose one
    """
    if request.client is None:
        return "unknown"
    return request.client.host


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "Unknown")


AccessTokenServiceDep = Annotated[AccessTokenService, Depends(get_access_token_service_dep)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter_dep)]
ClientIpDep = Annotated[str, Depends(get_client_ip)]
UserAgentDep = Annotated[str, Depends(get_user_agent)]
