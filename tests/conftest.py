# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("CLIENT_CAPTCHA_ANSWER", "2024")

from gradeproof.api.v1 import dependencies
from gradeproof.core.settings import settings
from gradeproof.db.session import Base
from gradeproof.db.session import get_db as app_get_session
from gradeproof.main import app as fastapi_app
from gradeproof.models import GradingRequest
from gradeproof.models.grading_request import VIDEO_STATUS_UPLOADED
from gradeproof.services.access_tokens import AccessTokenService
from gradeproof.services.rate_limit import RateLimiter

TEST_DB_URL = "sqlite://"

_SUBMISSION_COUNTER = count(1)


class FakeClock:
    """Manually advanced clock for time-dependent services."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point video and QR storage at a per-test directory."""
    root = tmp_path / "uploads"
    root.mkdir()
    monkeypatch.setattr(settings, "upload_dir", str(root))
    return root


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def token_service(clock: FakeClock) -> AccessTokenService:
    return AccessTokenService(secret="test-client-secret", ttl_seconds=3600, clock=clock)


@pytest.fixture()
def rate_limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(max_attempts=5, block_seconds=3600, clock=clock)


@pytest.fixture(autouse=True)
def override_client_services(
    app: FastAPI,
    token_service: AccessTokenService,
    rate_limiter: RateLimiter,
) -> Iterator[None]:
    """Give every test its own token store and rate limiter."""
    overrides: dict[Callable[..., Any], Callable[[], Any]] = {
        dependencies.get_access_token_service_dep: lambda: token_service,
        dependencies.get_rate_limiter_dep: lambda: rate_limiter,
    }
    for dependency, override in overrides.items():
        app.dependency_overrides[dependency] = override

    try:
        yield
    finally:
        for dependency in list(overrides):
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_submission(db_session: Session) -> Callable[..., GradingRequest]:
    """Return a factory persisting grading requests with sensible defaults."""

    def _make(**overrides: Any) -> GradingRequest:
        values: dict[str, Any] = {
            "submission_id": f"PSA{next(_SUBMISSION_COUNTER):06d}",
            "customer_email": "collector.smith@example.com",
            "card_name": "Charizard Holo",
            "card_series": "Base Set",
            "card_year": "1999",
            "card_number": "4/102",
            "grading_type": "standard",
            "status": "received",
        }
        values.update(overrides)
        submission = GradingRequest(**values)
        db_session.add(submission)
        db_session.commit()
        return submission

    return _make


@pytest.fixture()
def submission(make_submission: Callable[..., GradingRequest]) -> GradingRequest:
    """A submission with no video yet."""
    return make_submission()


@pytest.fixture()
def submission_with_video(
    make_submission: Callable[..., GradingRequest],
    upload_dir: Path,
) -> GradingRequest:
    """A submission whose proof video is stored on disk."""
    videos = upload_dir / "videos"
    videos.mkdir(exist_ok=True)
    submission_id = f"PSA{next(_SUBMISSION_COUNTER):06d}"
    relative = f"videos/{submission_id}-1700000000000.webm"
    (upload_dir / relative).write_bytes(b"proof-video")
    return make_submission(
        submission_id=submission_id,
        video_url=relative,
        video_status=VIDEO_STATUS_UPLOADED,
        video_file_size=11,
        video_duration=42,
    )
