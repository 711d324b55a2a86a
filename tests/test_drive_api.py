"""Drive listing and download tests against a patched requests.get."""

from __future__ import annotations

import io
import json
from typing import List

import pytest
import requests
from google.auth import exceptions as google_exceptions

from gallerysync import drive_api
from gallerysync.drive_api import DriveClient, is_image
from gallerysync.errors import DriveAuthError, DriveNotFoundError, TransientDriveError

from conftest import no_wait_retry


class FakeCreds:
    valid = True
    token = "tok"


class ExpiredCreds:
    """Credentials whose refresh raises the queued errors, then succeeds."""

    def __init__(self, *errors: Exception) -> None:
        self.valid = False
        self.token = None
        self.errors = list(errors)
        self.refresh_calls = 0

    def refresh(self, request) -> None:
        self.refresh_calls += 1
        if self.errors:
            raise self.errors.pop(0)
        self.valid = True
        self.token = "fresh"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, body: bytes = b"") -> None:
        self.status_code = status_code
        self._payload = payload
        self._body = body
        self.text = json.dumps(payload) if payload is not None else ""

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self._body), chunk_size):
            yield self._body[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None


class FakeHttp:
    """Serves queued responses (or raises queued exceptions) from requests.get."""

    def __init__(self) -> None:
        self.queue: List = []
        self.calls: List[dict] = []

    def append(self, item) -> None:
        self.queue.append(item)

    def get(self, url, headers=None, params=None, **kwargs):
        self.calls.append({"url": url, "headers": headers, "params": dict(params or {})})
        item = self.queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def responses(monkeypatch: pytest.MonkeyPatch) -> FakeHttp:
    http = FakeHttp()
    monkeypatch.setattr(drive_api.requests, "get", http.get)
    return http


def test_pages_until_exhausted_and_filters_images(responses: FakeHttp) -> None:
    responses.append(FakeResponse(payload={
        "files": [
            {"id": "a", "name": "a.jpg", "mimeType": "image/jpeg",
             "createdTime": "2024-01-01T00:00:00.000Z", "modifiedTime": "2024-01-02T00:00:00.000Z"},
            {"id": "doc", "name": "notes.pdf", "mimeType": "application/pdf"},
        ],
        "nextPageToken": "p2",
    }))
    responses.append(FakeResponse(payload={
        "files": [
            {"id": "b", "name": "b.PNG", "mimeType": "application/octet-stream"},
            {"id": "c", "name": "c.txt", "mimeType": "application/octet-stream"},
            {"id": "d", "name": "d.webp"},
        ],
    }))

    assets = DriveClient(FakeCreds(), retry=no_wait_retry()).list_images("folder1")

    assert [a.id for a in assets] == ["a", "b", "d"]
    assert assets[0].modified_at.day == 2
    calls = responses.calls
    assert len(calls) == 2
    assert calls[0]["params"]["q"] == "'folder1' in parents and trashed=false"
    assert "pageToken" not in calls[0]["params"]
    assert calls[1]["params"]["pageToken"] == "p2"
    assert calls[0]["headers"]["Authorization"] == "Bearer tok"


def test_transient_listing_error_is_retried(responses: FakeHttp) -> None:
    responses.append(requests.exceptions.Timeout("slow"))
    responses.append(FakeResponse(503, payload={"error": {"code": 503}}))
    responses.append(FakeResponse(payload={"files": [{"id": "a", "name": "a.jpg", "mimeType": "image/jpeg"}]}))

    assets = DriveClient(FakeCreds(), retry=no_wait_retry()).list_images("folder1")

    assert [a.id for a in assets] == ["a"]
    assert len(responses.calls) == 3


def test_forbidden_listing_is_not_retried(responses: FakeHttp) -> None:
    responses.append(FakeResponse(403, payload={"error": {"errors": [{"reason": "insufficientPermissions"}]}}))

    with pytest.raises(DriveAuthError):
        DriveClient(FakeCreds(), retry=no_wait_retry()).list_images("folder1")

    assert len(responses.calls) == 1


def test_rate_limited_403_is_transient(responses: FakeHttp) -> None:
    responses.append(FakeResponse(403, payload={"error": {"errors": [{"reason": "userRateLimitExceeded"}]}}))
    responses.append(FakeResponse(payload={"files": []}))

    assert DriveClient(FakeCreds(), retry=no_wait_retry()).list_images("folder1") == []


def test_download_streams_bytes(responses: FakeHttp) -> None:
    responses.append(FakeResponse(body=b"x" * 200_000))
    out = io.BytesIO()

    written = DriveClient(FakeCreds()).download("file1", out)

    assert written == 200_000
    assert out.getvalue() == b"x" * 200_000
    assert responses.calls[0]["params"] == {"alt": "media"}
    assert responses.calls[0]["url"].endswith("/files/file1")


def test_download_errors_are_classified(responses: FakeHttp) -> None:
    responses.append(FakeResponse(404, payload={"error": {"code": 404}}))
    responses.append(requests.exceptions.ConnectionError("reset"))
    client = DriveClient(FakeCreds())

    with pytest.raises(DriveNotFoundError):
        client.download("gone", io.BytesIO())
    with pytest.raises(TransientDriveError):
        client.download("flaky", io.BytesIO())


def test_refresh_network_error_is_retried(responses: FakeHttp) -> None:
    """A dropped connection to the token endpoint is retried like any transient error."""
    creds = ExpiredCreds(google_exceptions.TransportError("oauth2.googleapis.com: connection reset"))
    responses.append(FakeResponse(payload={"files": [{"id": "a", "name": "a.jpg", "mimeType": "image/jpeg"}]}))

    assets = DriveClient(creds, retry=no_wait_retry()).list_images("folder1")

    assert [a.id for a in assets] == ["a"]
    assert creds.refresh_calls == 2
    assert responses.calls[0]["headers"]["Authorization"] == "Bearer fresh"


def test_refresh_network_error_exhausts_as_transient(responses: FakeHttp) -> None:
    creds = ExpiredCreds(*[google_exceptions.TransportError("connection reset") for _ in range(4)])

    with pytest.raises(TransientDriveError, match="token refresh failed"):
        DriveClient(creds, retry=no_wait_retry()).list_images("folder1")

    assert creds.refresh_calls == 4
    assert responses.calls == []


def test_rejected_refresh_is_auth_error_without_retry(responses: FakeHttp) -> None:
    creds = ExpiredCreds(google_exceptions.RefreshError("invalid_grant: Token has been revoked"))

    with pytest.raises(DriveAuthError):
        DriveClient(creds, retry=no_wait_retry()).list_images("folder1")

    assert creds.refresh_calls == 1
    assert responses.calls == []


def test_download_refresh_error_is_drive_error(responses: FakeHttp) -> None:
    creds = ExpiredCreds(google_exceptions.TransportError("connection reset"))

    with pytest.raises(TransientDriveError):
        DriveClient(creds).download("file1", io.BytesIO())

    assert responses.calls == []


@pytest.mark.parametrize(
    "mime, name, expected",
    [
        ("image/heic", "IMG_1.HEIC", True),
        ("image/jpeg", "no-extension", True),
        ("", "a.jpeg", True),
        (None, "a.gif", True),
        ("application/octet-stream", "a.mov", False),
        ("video/mp4", "clip.jpg", False),
    ],
)
def test_is_image(mime, name, expected: bool) -> None:
    assert is_image(mime, name) is expected
