"""Shared fixtures and in-memory Drive fakes."""

from __future__ import annotations

import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from gallerysync.models import RemoteAsset
from gallerysync.retry import RetryPolicy

NOW = datetime.datetime(2024, 6, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


class FakeDrive:
    """In-memory stand-in for DriveClient that counts calls.

    Attributes:
        folders: Folder id -> listed assets, or an exception to raise.
        content: File id -> bytes returned by download.
        failures: File id -> exceptions raised by successive download calls
            before content is served.
    """

    def __init__(self) -> None:
        self.folders: Dict[str, object] = {}
        self.content: Dict[str, bytes] = {}
        self.failures: Dict[str, List[Exception]] = {}
        self.download_calls: List[str] = []
        self.list_calls: List[str] = []

    def add(self, folder_id: str, asset: RemoteAsset, data: bytes = b"jpeg-bytes") -> RemoteAsset:
        self.folders.setdefault(folder_id, [])
        self.folders[folder_id].append(asset)
        self.content[asset.id] = data
        return asset

    def list_images(self, folder_id: str) -> List[RemoteAsset]:
        self.list_calls.append(folder_id)
        listed = self.folders.get(folder_id, [])
        if isinstance(listed, Exception):
            raise listed
        return list(listed)

    def download(self, file_id: str, out) -> int:
        self.download_calls.append(file_id)
        pending = self.failures.get(file_id)
        if pending:
            raise pending.pop(0)
        data = self.content[file_id]
        out.write(data)
        return len(data)


def make_asset(asset_id: str, name: Optional[str] = None, mime_type: str = "image/jpeg",
               modified_at: Optional[datetime.datetime] = None) -> RemoteAsset:
    return RemoteAsset(
        id=asset_id,
        display_name=name if name is not None else f"{asset_id}.jpg",
        mime_type=mime_type,
        created_at=NOW - datetime.timedelta(days=400),
        modified_at=modified_at,
    )


def no_wait_retry(max_retries: int = 3) -> RetryPolicy:
    return RetryPolicy(max_retries=max_retries, initial_delay=0.0, jitter=False, sleep=lambda _: None)


@pytest.fixture
def drive() -> FakeDrive:
    return FakeDrive()


@pytest.fixture
def images_dir(tmp_path: Path) -> Path:
    return tmp_path / "images"


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"
