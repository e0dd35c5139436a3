"""
Pytest configuration and fixtures for pairgallery tests.
"""

import io
import time
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import jwt
import pytest
from PIL import Image

from pairgallery.config import get_config
from pairgallery.error_handling import UploadError
from pairgallery.models.database import get_database_manager
from pairgallery.services.auth import AuthService, UserInfo, reset_auth_service
from pairgallery.services.media_upload import STORAGE_LOCAL, UploadResult
from pairgallery.services.memory_gateway import InMemoryGateway
from pairgallery.services.preferences import AppSettings, PreferencesStore


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("PREFERENCES_DB_PATH", str(tmp_path / "preferences.duckdb"))
    for key in (
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "IMAGEKIT_PUBLIC_KEY",
        "IMAGEKIT_AUTH_ENDPOINT",
        "IMAGEKIT_USAGE_ENDPOINT",
        "CLOUDINARY_RELAY_URL",
        "SLIDESHOW_DEFAULT_MS",
    ):
        monkeypatch.delenv(key, raising=False)

    get_config().clear_cache()
    reset_auth_service()
    yield
    get_config().clear_cache()
    reset_auth_service()


class FakeTimer:
    """Timer handle of the FakeScheduler."""

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock for viewer timers; ``advance`` fires due callbacks in order."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self._timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [timer for timer in self.pending if timer.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self._timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target


class FakeUploader:
    """Stands in for MediaUploadService in session tests."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: list[tuple[str, str]] = []

    async def upload(self, data: bytes, filename: str, mime_type: str, on_progress: Any = None) -> UploadResult:
        self.uploads.append((filename, mime_type))
        if self.fail:
            raise UploadError("Upload rejected by provider", code="provider_rejected")
        return UploadResult(url=f"https://cdn.example.com/{filename}", storage_type=STORAGE_LOCAL)


class TestDataFactory:
    """Factory class for creating test data objects."""

    @staticmethod
    def create_user_info(
        user_id: str = "test-user-123",
        email: str = "test@example.com",
        name: str | None = "Test User",
    ) -> UserInfo:
        return UserInfo(user_id=user_id, email=email, name=name)

    @staticmethod
    def create_auth(user: UserInfo | None = None) -> AuthService:
        """An auth service with ``user`` signed in and no remote endpoint."""
        auth = AuthService(base_url="", api_key="", development_mode=False)
        auth.set_current_user(user or TestDataFactory.create_user_info())
        return auth

    @staticmethod
    def create_jwt_payload(
        user_id: str = "test-user-123",
        email: str = "test@example.com",
        name: str | None = "Test User",
        exp: int | None = None,
    ) -> dict:
        current_time = int(time.time())
        payload: dict[str, Any] = {
            "sub": user_id,
            "email": email,
            "iat": current_time,
            "exp": exp or (current_time + 3600),
            "role": "authenticated",
        }
        if name is not None:
            payload["user_metadata"] = {"name": name}
        return payload

    @staticmethod
    def create_access_token(payload: dict | None = None) -> str:
        """Sign a token with a throwaway key; the app reads claims without verifying."""
        return jwt.encode(payload or TestDataFactory.create_jwt_payload(), "test-secret", algorithm="HS256")

    @staticmethod
    def create_message_row(
        row_id: str = "m1",
        text: str = "hello",
        sender_id: str = "test-user-123",
        household_id: str = "household-1",
        created_at: datetime | None = None,
    ) -> dict[str, Any]:
        return {
            "id": row_id,
            "text": text,
            "sender_id": sender_id,
            "household_id": household_id,
            "created_at": (created_at or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)).isoformat(),
        }

    @staticmethod
    def create_media_row(
        row_id: str = "img1",
        user_id: str = "test-user-123",
        media_type: str = "photo",
        favorite: bool = False,
        private: bool = False,
        created_at: datetime | None = None,
        file_name: str | None = None,
    ) -> dict[str, Any]:
        return {
            "id": row_id,
            "user_id": user_id,
            "image_url": f"https://cdn.example.com/{row_id}.jpg",
            "type": media_type,
            "file_name": file_name or f"{row_id}.jpg",
            "storage_type": "imagekit",
            "favorite": favorite,
            "private": private,
            "created_at": (created_at or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)).isoformat(),
        }

    @staticmethod
    def create_media_rows(count: int, start: datetime | None = None, **kwargs: Any) -> list[dict[str, Any]]:
        start = start or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        return [
            TestDataFactory.create_media_row(f"img{i}", created_at=start + timedelta(minutes=i), **kwargs)
            for i in range(count)
        ]

    @staticmethod
    def create_event_row(
        row_id: str = "e1",
        title: str = "Anniversary",
        day: str = "2024-06-01",
        event_type: str = "anniversary",
        user_id: str = "test-user-123",
        household_id: str = "household-1",
        emoji: str = "",
        created_at: datetime | None = None,
    ) -> dict[str, Any]:
        return {
            "id": row_id,
            "user_id": user_id,
            "household_id": household_id,
            "title": title,
            "date": day,
            "type": event_type,
            "emoji": emoji,
            "note": "",
            "created_at": (created_at or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)).isoformat(),
        }

    @staticmethod
    def create_jpeg_bytes(size: tuple[int, int] = (16, 16), exif_date: str | None = None) -> bytes:
        """JPEG bytes, optionally with an EXIF DateTimeOriginal like ``2023:07:14 09:30:00``."""
        image = Image.new("RGB", size, color=(200, 80, 120))
        buffer = io.BytesIO()
        if exif_date:
            exif = Image.Exif()
            exif[0x0132] = exif_date
            exif.get_ifd(0x8769)[0x9003] = exif_date
            image.save(buffer, format="JPEG", exif=exif.tobytes())
        else:
            image.save(buffer, format="JPEG")
        return buffer.getvalue()


@pytest.fixture
def test_data_factory() -> TestDataFactory:
    """Provide TestDataFactory instance for tests."""
    return TestDataFactory()


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def user() -> UserInfo:
    return TestDataFactory.create_user_info()


@pytest.fixture
def auth(user: UserInfo) -> AuthService:
    return TestDataFactory.create_auth(user)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(PreferencesStore(get_database_manager(":memory:")))
