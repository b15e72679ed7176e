from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

from campus_market.application.services.account_service import AccountService
from campus_market.application.services.listing_query import ListingQueryService
from campus_market.application.services.listing_service import ListingService
from campus_market.core.app_factory import create_application
from campus_market.core.config import Settings
from campus_market.domain.errors import UpstreamUploadError
from campus_market.domain.ports.media import ImageUpload
from campus_market.infrastructure.persistence.sqlite import SQLitePersistence

PLACEHOLDER_URL = "https://placeholder.test/item.png"
JWT_SECRET = "test-secret"


class Clock:
    """Settable time source for OTP expiry checks."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    enabled = True

    def __init__(self) -> None:
        self.codes: Dict[str, List[str]] = {}
        self.welcomed: List[str] = []
        self.fail_otp = False
        self.raise_on_welcome = False

    def send_otp_email(self, to_email: str, otp: str) -> bool:
        if self.fail_otp:
            return False
        self.codes.setdefault(to_email, []).append(otp)
        return True

    def send_welcome_email(self, to_email: str, name: str) -> bool:
        if self.raise_on_welcome:
            raise ConnectionError("smtp down")
        self.welcomed.append(to_email)
        return True

    def last_code(self, email: str) -> str:
        return self.codes[email][-1]


class FakeImageHost:
    def __init__(self) -> None:
        self.uploaded: List[str] = []
        self.fail = False

    def upload(self, image: ImageUpload) -> str:
        if self.fail:
            raise UpstreamUploadError("host unavailable")
        self.uploaded.append(image.filename)
        return f"https://images.test/{len(self.uploaded)}/{image.filename}"


def registration_fields(**overrides):
    fields = {
        "name": "Asha Patil",
        "email": "asha@pict.edu",
        "password": "secret123",
        "phone": "9876543210",
        "whatsapp": "9876543210",
        "year": "TE",
        "branch": "CS",
        "institutionalId": "C2K221234",
    }
    fields.update(overrides)
    return fields


def listing_fields(**overrides):
    fields = {
        "title": "Engineering Mathematics III",
        "description": "Barely used textbook, no markings inside.",
        "price": "350",
        "category": "Books",
        "condition": "Like New",
        "tags": "maths, textbook",
    }
    fields.update(overrides)
    return fields


def image(name: str = "photo.png", size: int = 16, content_type: str = "image/png") -> ImageUpload:
    return ImageUpload(filename=name, content_type=content_type, data=b"\x89" * size)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def persistence(tmp_path):
    gateway = SQLitePersistence(tmp_path / "market.db")
    yield gateway
    gateway.close()


@pytest.fixture
def account_service(persistence, notifier, clock):
    return AccountService(persistence, notifier, jwt_secret=JWT_SECRET, clock=clock)


@pytest.fixture
def listing_service(persistence, image_host, clock):
    return ListingService(persistence, image_host, placeholder_url=PLACEHOLDER_URL, clock=clock)


@pytest.fixture
def query_service(persistence):
    return ListingQueryService(persistence)


@pytest.fixture
def make_user(persistence, clock):
    """Create a verified account directly in storage."""
    counter = {"n": 0}

    def factory(name: str = "Seller", verified: bool = True):
        counter["n"] += 1
        n = counter["n"]
        user = persistence.create_user(
            name=name,
            email=f"user{n}@pict.edu",
            password_hash="unused",
            phone="9000000000",
            whatsapp="9000000001",
            year="SE",
            branch="IT",
            institutional_id=f"E2K22{n:04d}",
            email_otp="123456",
            email_otp_expiry=clock() + timedelta(minutes=10),
        )
        if verified:
            persistence.mark_user_verified(user.id)
        return persistence.get_user_by_id(user.id)

    return factory


@pytest.fixture
def client(tmp_path, monkeypatch, notifier, image_host, clock):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "api.db"))
    monkeypatch.setenv("JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("PLACEHOLDER_IMAGE_URL", PLACEHOLDER_URL)
    app = create_application(Settings(), notifier=notifier, image_host=image_host, clock=clock)
    with TestClient(app) as test_client:
        yield test_client
