import logging
from typing import BinaryIO, List, Optional

import requests
from google.auth import exceptions as google_exceptions
from google.auth.transport.requests import Request

from gallerysync.errors import (
    DriveApiError,
    DriveAuthError,
    DriveNotFoundError,
    TransientDriveError,
)
from gallerysync.models import RemoteAsset, parse_timestamp
from gallerysync.naming import image_extension
from gallerysync.retry import RetryPolicy

logger = logging.getLogger(__name__)

FILES_URL = "https://www.googleapis.com/drive/v3/files"
LIST_FIELDS = "nextPageToken, files(id,name,mimeType,createdTime,modifiedTime)"
PAGE_SIZE = 1000
TIMEOUT = (10, 60)
CHUNK_SIZE = 64 * 1024

GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}


def get_headers(creds, what: str = "Drive request"):
    """
    Return headers for authorized requests to Google Drive, refreshing the
    token first if needed. Refresh failures surface as Drive errors: network
    trouble is transient, a rejected credential is not.
    """
    if not creds.valid:
        try:
            creds.refresh(Request())
        except google_exceptions.TransportError as e:
            raise TransientDriveError(f"{what}: token refresh failed: {e}") from e
        except google_exceptions.RefreshError as e:
            if getattr(e, "retryable", False):
                raise TransientDriveError(f"{what}: token refresh failed: {e}") from e
            raise DriveAuthError(f"{what}: token refresh failed: {e}") from e
    return {
        "Authorization": f"Bearer {creds.token}",
    }


def is_image(mime_type: Optional[str], name: Optional[str]) -> bool:
    """
    MIME type decides; the filename extension only counts when the MIME type
    is missing or generic.
    """
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return True
    if mime in GENERIC_MIME_TYPES:
        return image_extension(name or "") is not None
    return False


def _error_reason(resp) -> str:
    try:
        errors = resp.json().get("error", {}).get("errors", [])
        return errors[0].get("reason", "") if errors else ""
    except (ValueError, AttributeError):
        return ""


def raise_for_status(resp, what: str):
    """
    Map an HTTP error response onto the retryable/permanent error types.
    """
    code = resp.status_code
    if code < 400:
        return
    message = f"{what}: HTTP {code} {resp.text[:200]}"
    if code == 403 and _error_reason(resp) in RATE_LIMIT_REASONS:
        raise TransientDriveError(message, code)
    if code in (401, 403):
        raise DriveAuthError(message, code)
    if code == 404:
        raise DriveNotFoundError(message, code)
    if code == 429 or code >= 500:
        raise TransientDriveError(message, code)
    raise DriveApiError(message, code)


def _parse_time(value: Optional[str]):
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


def to_remote_asset(record: dict) -> RemoteAsset:
    return RemoteAsset(
        id=record["id"],
        display_name=record.get("name") or "",
        mime_type=record.get("mimeType") or "",
        created_at=_parse_time(record.get("createdTime")),
        modified_at=_parse_time(record.get("modifiedTime")),
    )


def list_files_page(creds, folder_id: str, page_token: Optional[str] = None) -> dict:
    """
    One files.list call for the folder. Returns the decoded JSON page.
    """
    params = {
        "q": f"'{folder_id}' in parents and trashed=false",
        "fields": LIST_FIELDS,
        "pageSize": PAGE_SIZE,
    }
    if page_token:
        params["pageToken"] = page_token

    try:
        headers = get_headers(creds, f"Listing folder {folder_id}")
        resp = requests.get(FILES_URL, headers=headers, params=params, timeout=TIMEOUT)
    except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
        raise TransientDriveError(f"Listing folder {folder_id}: {e}") from e
    except requests.exceptions.RequestException as e:
        raise DriveApiError(f"Listing folder {folder_id}: {e}") from e

    raise_for_status(resp, f"Listing folder {folder_id}")
    try:
        return resp.json()
    except ValueError as e:
        raise DriveApiError(f"Listing folder {folder_id}: invalid JSON response") from e


def download_file(creds, file_id: str, out: BinaryIO) -> int:
    """
    Stream a file's content into `out`. Returns the number of bytes written.
    """
    url = f"{FILES_URL}/{file_id}"
    try:
        headers = get_headers(creds, f"Downloading {file_id}")
        with requests.get(url, headers=headers, params={"alt": "media"},
                          stream=True, timeout=TIMEOUT) as resp:
            raise_for_status(resp, f"Downloading {file_id}")
            written = 0
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    out.write(chunk)
                    written += len(chunk)
            return written
    except (requests.exceptions.Timeout,
            requests.exceptions.ConnectionError,
            requests.exceptions.ChunkedEncodingError) as e:
        raise TransientDriveError(f"Downloading {file_id}: {e}") from e
    except requests.exceptions.RequestException as e:
        raise DriveApiError(f"Downloading {file_id}: {e}") from e


class DriveClient:
    """
    Drive v3 access bound to one set of credentials.
    """

    def __init__(self, creds, retry: Optional[RetryPolicy] = None):
        self.creds = creds
        self.retry = retry or RetryPolicy()

    def list_images(self, folder_id: str) -> List[RemoteAsset]:
        """
        All non-trashed images directly inside the folder, across every page.
        Each page request is retried on transient failure; anything else
        propagates and aborts the listing.
        """
        assets: List[RemoteAsset] = []
        skipped = 0
        page_token = None

        while True:
            data = self.retry.call(
                lambda: list_files_page(self.creds, folder_id, page_token),
                description=f"Listing folder {folder_id}",
            )
            for record in data.get("files", []):
                if is_image(record.get("mimeType"), record.get("name")):
                    assets.append(to_remote_asset(record))
                else:
                    skipped += 1

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        if skipped:
            logger.debug("Folder %s: skipped %d non-image file(s)", folder_id, skipped)
        return assets

    def download(self, file_id: str, out: BinaryIO) -> int:
        return download_file(self.creds, file_id, out)
