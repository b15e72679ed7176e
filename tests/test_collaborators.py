import smtplib

import cloudinary.uploader
import pytest
from cloudinary.exceptions import Error as CloudinaryError

from campus_market.domain.errors import UpstreamUploadError
from campus_market.services.email_service import EmailService
from campus_market.services.image_host import CloudinaryImageHost

from conftest import image


def _host(folder="listings"):
    return CloudinaryImageHost("demo", "key-123", "secret-xyz", folder=folder)


def test_cloudinary_upload_passes_credentials_and_returns_secure_url(monkeypatch):
    calls = []

    def fake_upload(file, **options):
        calls.append((file.read(), options))
        return {"secure_url": "https://res.test/a.png", "public_id": "listings/a"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    url = _host().upload(image("a.png", size=4))

    assert url == "https://res.test/a.png"
    data, options = calls[0]
    assert data == b"\x89" * 4
    assert options["folder"] == "listings"
    assert options["resource_type"] == "image"
    assert (options["cloud_name"], options["api_key"], options["api_secret"]) == (
        "demo",
        "key-123",
        "secret-xyz",
    )


def test_cloudinary_upload_without_folder(monkeypatch):
    seen = {}

    def fake_upload(file, **options):
        seen.update(options)
        return {"secure_url": "https://res.test/b.png"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    _host(folder=None).upload(image())

    assert "folder" not in seen


@pytest.mark.parametrize(
    "failure",
    [
        CloudinaryError("Invalid Signature"),
        ConnectionResetError("connection reset"),
        {},
        None,
    ],
)
def test_cloudinary_failures_raise_upstream_error(monkeypatch, failure):
    def fake_upload(file, **options):
        if isinstance(failure, Exception):
            raise failure
        return failure

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    with pytest.raises(UpstreamUploadError):
        _host().upload(image())


def test_cloudinary_requires_credentials():
    with pytest.raises(RuntimeError):
        CloudinaryImageHost("demo", "", "secret")


def test_email_service_without_smtp_reports_success(caplog):
    service = EmailService()

    with caplog.at_level("WARNING"):
        assert service.send_otp_email("asha@pict.edu", "482913") is True

    assert not service.enabled
    assert "482913" in caplog.text
    assert service.send_welcome_email("asha@pict.edu", "Asha") is True


def test_email_service_smtp_failure_returns_false(monkeypatch):
    def refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, "try later")

    monkeypatch.setattr(smtplib, "SMTP", refuse)
    service = EmailService(
        smtp_host="smtp.test", smtp_username="bot@pict.edu", smtp_password="pw"
    )

    assert service.enabled
    assert service.send_otp_email("asha@pict.edu", "482913") is False
