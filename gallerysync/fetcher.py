import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from gallerysync.errors import DriveApiError
from gallerysync.local_store import (
    ensure_dir,
    is_materialized,
    move_local_file,
    partial_path,
    remove_partial,
)
from gallerysync.retry import RetryPolicy

logger = logging.getLogger(__name__)


class FetchOutcome(str, Enum):
    SKIPPED = "skipped"
    MOVED = "moved"
    DOWNLOADED = "downloaded"


class Fetcher:
    """
    Puts a Drive file's bytes at a local path at most once.

    `drive` needs a single method, download(file_id, out) -> bytes written.
    """

    def __init__(self, drive, retry: Optional[RetryPolicy] = None):
        self.drive = drive
        self.retry = retry or RetryPolicy()

    def ensure_materialized(self, asset_id: str, destination: Path,
                            alternate: Optional[Path] = None) -> FetchOutcome:
        """
        Skip if destination already holds non-empty content. If the same file
        sits at `alternate` (it moved between current and archive), move it.
        Otherwise download into destination.part and rename on success.

        Raises DriveApiError (or OSError) once retries are exhausted.
        """
        if is_materialized(destination):
            logger.debug("Already present, skipping %s", destination)
            return FetchOutcome.SKIPPED

        if alternate is not None and is_materialized(alternate):
            move_local_file(alternate, destination)
            return FetchOutcome.MOVED

        ensure_dir(destination.parent)
        self.retry.call(
            lambda: self._download_once(asset_id, destination),
            description=f"Downloading {asset_id}",
        )
        logger.info("Downloaded item %s -> %s", asset_id, destination)
        return FetchOutcome.DOWNLOADED

    def _download_once(self, asset_id: str, destination: Path):
        tmp = partial_path(destination)
        try:
            with open(tmp, "wb") as f:
                written = self.drive.download(asset_id, f)
                f.flush()
                os.fsync(f.fileno())
            if not written:
                raise DriveApiError(f"Downloading {asset_id}: empty content")
            os.replace(tmp, destination)
        finally:
            remove_partial(destination)
