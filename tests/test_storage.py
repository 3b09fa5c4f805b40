import pytest
import requests

from civicvoice.core.config import settings
from civicvoice.core.errors import UploadFailed, UploadTooLarge, UpstreamFailure, ValidationError
from civicvoice.services import storage

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


@pytest.fixture
def supabase(monkeypatch):
    monkeypatch.setattr(settings, "supabase_url", "https://demo.supabase.co")
    monkeypatch.setattr(settings, "supabase_service_role", "service-key")
    monkeypatch.setattr(settings, "supabase_bucket", "issue-images")


def test_rejects_non_image():
    with pytest.raises(ValidationError) as exc:
        storage.upload_image(b"%PDF", "application/pdf", "1/a.pdf")
    assert exc.value.field == "image"


def test_rejects_oversized(monkeypatch):
    monkeypatch.setattr(settings, "max_image_bytes", 16)
    with pytest.raises(UploadTooLarge):
        storage.upload_image(PNG, "image/png", "1/a.png")


def test_inlines_without_object_storage():
    url = storage.upload_image(PNG, "image/png", "1/a.png")
    assert url.startswith("data:image/png;base64,")


def test_uploads_and_returns_public_url(supabase, monkeypatch):
    calls = []

    def fake_post(url, headers=None, data=None, timeout=None):
        calls.append((url, headers, data))
        return FakeResponse(200)

    monkeypatch.setattr(storage.requests, "post", fake_post)
    url = storage.upload_image(PNG, "image/png", "5/abc.png")

    assert url == "https://demo.supabase.co/storage/v1/object/public/issue-images/5/abc.png"
    posted_url, headers, data = calls[0]
    assert posted_url == "https://demo.supabase.co/storage/v1/object/issue-images/5/abc.png"
    assert headers["Authorization"] == "Bearer service-key"
    assert data == PNG


def test_transport_error_becomes_upload_failed(supabase, monkeypatch):
    boom = requests.ConnectionError("connection reset")

    def fake_post(*args, **kwargs):
        raise boom

    monkeypatch.setattr(storage.requests, "post", fake_post)
    with pytest.raises(UploadFailed) as exc:
        storage.upload_image(PNG, "image/png", "5/abc.png")
    assert isinstance(exc.value, UpstreamFailure)
    assert exc.value.__cause__ is boom
    assert exc.value.status_code == 502


def test_http_error_becomes_upload_failed(supabase, monkeypatch):
    monkeypatch.setattr(storage.requests, "post", lambda *a, **kw: FakeResponse(500))
    with pytest.raises(UploadFailed) as exc:
        storage.upload_image(PNG, "image/png", "5/abc.png")
    assert isinstance(exc.value.__cause__, requests.HTTPError)


def test_object_key():
    key = storage.make_object_key(7, "Photo.JPEG")
    assert key.startswith("7/")
    assert key.endswith(".jpeg")
    assert storage.make_object_key(7, "noext").endswith(".jpg")


class RecordingFile:
    def __init__(self, payload):
        self.payload = payload
        self.requested = []

    def read(self, size=-1):
        self.requested.append(size)
        return self.payload if size < 0 else self.payload[:size]


def test_read_upload_stops_past_the_limit(monkeypatch):
    monkeypatch.setattr(settings, "max_image_bytes", 16)
    upload = RecordingFile(b"\x00" * 10_000)
    with pytest.raises(UploadTooLarge):
        storage.read_upload(upload)
    assert upload.requested == [17]


def test_read_upload_returns_small_files(monkeypatch):
    monkeypatch.setattr(settings, "max_image_bytes", 64)
    upload = RecordingFile(PNG)
    assert storage.read_upload(upload) == PNG
    assert upload.requested == [65]
