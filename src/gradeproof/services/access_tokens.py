"""Short-lived access tokens granting customers a view of their proof video.

Tokens are opaque keyed digests. Everything needed to honour them lives in a
server-side session record, so tokens cannot be forged or extended by the
client and disappear with the process.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from gradeproof.core.security import keyed_token
from gradeproof.core.settings import settings
from gradeproof.services.session_store import InMemoryStore, SessionStore

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TokenFailure(str, Enum):
    """Reasons a token can be rejected."""

    MISSING_INPUT = "MISSING_INPUT"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    SUBMISSION_MISMATCH = "SUBMISSION_MISMATCH"


_FAILURE_MESSAGES = {
    TokenFailure.MISSING_INPUT: "Token or submission ID missing",
    TokenFailure.NOT_FOUND: "Invalid or expired token",
    TokenFailure.EXPIRED: "Token expired",
    TokenFailure.SUBMISSION_MISMATCH: "Token is not valid for this submission",
}


@dataclass
class SessionRecord:
    """Server-side state bound to an issued access token."""

    token: str
    submission_id: str
    client_email: str
    client_ip: str | None
    created: float
    expires: float
    session_id: str
    used: bool = False

    def is_expired(self, now: float) -> bool:
        return now >= self.expires


@dataclass(frozen=True)
class IssuedToken:
    """Token material returned to the caller after issuance."""

    token: str
    expires_at: float
    session_id: str
    valid_for_seconds: int

    @property
    def expires_at_ms(self) -> int:
        return int(self.expires_at * 1000)


@dataclass(frozen=True)
class TokenValidation:
    """Outcome of validating a token against a submission."""

    valid: bool
    reason: TokenFailure | None = None
    session: SessionRecord | None = None

    @property
    def message(self) -> str | None:
        return _FAILURE_MESSAGES.get(self.reason) if self.reason else None

    @property
    def client_email(self) -> str | None:
        return self.session.client_email if self.session else None


class AccessTokenService:
    """Issue and validate customer access tokens."""

    def __init__(
        self,
        store: SessionStore[str, SessionRecord] | None = None,
        *,
        secret: str | None = None,
        ttl_seconds: int | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._store: SessionStore[str, SessionRecord] = store or InMemoryStore()
        self._secret = secret or settings.client_secret
        self._ttl_seconds = int(ttl_seconds or settings.client_token_ttl_seconds)
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, submission_id: str, email: str, ip: str | None) -> IssuedToken:
        """Create a session record and return the token bound to it.

        Args:
            submission_id: Submission the token grants access to.
            email: Verified customer email.
            ip: Address the verification came from.

        Returns:
            The token, its absolute expiry and the random session id.
        """
        now = self._clock()
        session_id = secrets.token_hex(16)
        payload = {
            "sub": submission_id,
            "email": email,
            "ip": ip,
            "ts": int(now * 1000),
            "sid": session_id,
        }
        token = keyed_token(self._secret, payload)
        expires = now + self._ttl_seconds

        self._store.set(
            token,
            SessionRecord(
                token=token,
                submission_id=submission_id,
                client_email=email,
                client_ip=ip,
                created=now,
                expires=expires,
                session_id=session_id,
            ),
        )
        logger.info(
            "Issued client access token for submission %s (session %s)",
            submission_id,
            session_id,
        )
        return IssuedToken(
            token=token,
            expires_at=expires,
            session_id=session_id,
            valid_for_seconds=self._ttl_seconds,
        )

    def validate(
        self, token: str | None, submission_id: str | None, ip: str | None
    ) -> TokenValidation:
        """Check a token against the submission it is presented for.

        A different client IP is logged but tolerated; mobile clients change
        address mid-session.
        """
        if not token or not submission_id:
            return TokenValidation(valid=False, reason=TokenFailure.MISSING_INPUT)

        session = self._store.get(token)
        if session is None:
            return TokenValidation(valid=False, reason=TokenFailure.NOT_FOUND)

        if session.is_expired(self._clock()):
            self._store.delete(token)
            return TokenValidation(valid=False, reason=TokenFailure.EXPIRED)

        if session.submission_id != submission_id:
            return TokenValidation(valid=False, reason=TokenFailure.SUBMISSION_MISMATCH)

        if session.client_ip != ip:
            logger.warning(
                "Client token for %s used from a different IP: %s != %s",
                submission_id,
                ip,
                session.client_ip,
            )

        return TokenValidation(valid=True, session=session)

    def mark_used(self, token: str) -> None:
        """Flag a session as having served its video at least once."""
        self._store.update(token, lambda record: replace(record, used=True) if record else None)

    def sweep_expired(self) -> int:
        """Purge expired session records and return how many were dropped."""
        now = self._clock()
        removed = self._store.sweep(lambda record: record.is_expired(now))
        if removed:
            logger.info("Swept %d expired client sessions", removed)
        return removed

    def __len__(self) -> int:
        return len(self._store)


class _AccessTokenServiceSingleton:
    _instance: AccessTokenService | None = None

    @classmethod
    def get_instance(cls) -> AccessTokenService:
        if cls._instance is None:
            cls._instance = AccessTokenService()
        return cls._instance


def get_access_token_service() -> AccessTokenService:
    """Return the process-wide access token service."""
    return _AccessTokenServiceSingleton.get_instance()
