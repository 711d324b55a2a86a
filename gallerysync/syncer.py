import datetime
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timezone
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from gallerysync.auth import AuthManager
from gallerysync.config import (
    DATA_DIR,
    DEFAULT_KEEP_DAYS,
    IMAGES_DIR,
    MANIFEST_FILE,
    load_user_config,
    resolve_collections,
)
from gallerysync.drive_api import DriveClient
from gallerysync.errors import EmptyCollectionError, GallerySyncError, SyncCancelled
from gallerysync.fetcher import Fetcher
from gallerysync.local_store import (
    collection_dirs,
    compute_local_path,
    other_area_path,
    relative_url,
    write_summary,
)
from gallerysync.manifest import Manifest, load_manifest, save_manifest
from gallerysync.models import (
    Bucket,
    ClassifiedAsset,
    CollectionResult,
    CollectionState,
    CollectionSummary,
    ItemResult,
    SyncReport,
)
from gallerysync.naming import stable_filename
from gallerysync.retention import classify

logger = logging.getLogger(__name__)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(timezone.utc)


def current_sort_key(item: ClassifiedAsset):
    """
    Newest first-seen first, then newest remote modification, then file id.
    """
    modified = item.asset.modified_at.timestamp() if item.asset.modified_at else 0.0
    return (-item.first_seen_at.timestamp(), -modified, item.asset.id)


class GallerySync:
    """
    Main class orchestrating the per-collection pipeline:
     - list the Drive folder
     - establish first-seen times in the manifest and classify
     - name and materialize every image locally
     - write the collection summary
    and persisting the manifest once after every collection has finished.
    """

    def __init__(
        self,
        drive,
        manifest: Manifest,
        manifest_path: Path = MANIFEST_FILE,
        keep_days: int = DEFAULT_KEEP_DAYS,
        images_dir: Path = IMAGES_DIR,
        data_dir: Path = DATA_DIR,
        site_root: Path = Path("."),
        fetcher: Optional[Fetcher] = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ):
        self.drive = drive
        self.manifest = manifest
        self.manifest_path = manifest_path
        self.keep_days = keep_days
        self.images_dir = images_dir
        self.data_dir = data_dir
        self.site_root = site_root
        self.fetcher = fetcher or Fetcher(drive)
        self.clock = clock
        # Set when a parallel run is interrupted; workers stop at the next stage.
        self._stop = threading.Event()

    # -----------------------------
    # 1) WHOLE RUN
    # -----------------------------

    def run(self, collections: Mapping[str, str], workers: int = 1,
            now: Optional[datetime.datetime] = None) -> SyncReport:
        """
        Sync every collection (key -> folder id), then persist the manifest.

        All collections share one `now` so ages are consistent within a run.
        An interrupt propagates without writing the manifest. In a parallel
        run the other workers stop before their next item or summary write,
        and the interrupt is re-raised only once they have stopped.
        """
        now = now or self.clock()
        self._stop.clear()

        if workers <= 1 or len(collections) <= 1:
            results = [self.sync_collection(key, folder_id, now) for key, folder_id in collections.items()]
        else:
            results = self._run_parallel(collections, workers, now)

        save_manifest(self.manifest, self.manifest_path)
        logger.info("Manifest saved to %s", self.manifest_path)
        return SyncReport(results)

    def _run_parallel(self, collections: Mapping[str, str], workers: int,
                      now: datetime.datetime) -> List[CollectionResult]:
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gallerysync")
        try:
            futures = [
                pool.submit(self.sync_collection, key, folder_id, now)
                for key, folder_id in collections.items()
            ]
            results = [f.result() for f in futures]
        except BaseException:
            self._stop.set()
            pool.shutdown(wait=True, cancel_futures=True)
            raise
        pool.shutdown()
        return results

    # -----------------------------
    # 2) ONE COLLECTION
    # -----------------------------

    def sync_collection(self, collection_key: str, folder_id: str,
                        now: datetime.datetime) -> CollectionResult:
        result = CollectionResult(collection_key)

        # LISTING: the only stage whose failure is fatal for the collection.
        try:
            assets = self.drive.list_images(folder_id)
            if not assets:
                raise EmptyCollectionError(f"No images found in folder {folder_id}")
        except GallerySyncError as e:
            result.state = CollectionState.FAILED
            result.error = str(e)
            logger.error("Collection %s failed; keeping previous summary: %s", collection_key, e)
            return result

        self._check_stop(collection_key)
        self._advance(result, CollectionState.CLASSIFYING)
        classified = [self._classify(collection_key, asset, now) for asset in assets]

        self._advance(result, CollectionState.MATERIALIZING)
        collection_dirs(self.images_dir, collection_key)
        for item in classified:
            self._check_stop(collection_key)
            result.items.append(self._materialize(collection_key, item))

        self._check_stop(collection_key)
        self._advance(result, CollectionState.SUMMARIZING)
        current = sorted((c for c in classified if c.bucket == Bucket.CURRENT), key=current_sort_key)
        summary = CollectionSummary(
            collection_key=collection_key,
            generated_at=now,
            retention_threshold_days=self.keep_days,
            current_items=current,
            archived_count=len(classified) - len(current),
        )
        write_summary(self.data_dir, summary)
        result.summary = summary

        self._advance(result, CollectionState.DONE)
        logger.info(
            "Synced %s: current=%d, archived=%d, failed=%d",
            collection_key, len(current), summary.archived_count, len(result.failed_items),
        )
        return result

    # -----------------------------
    # 3) INTERNAL HELPERS
    # -----------------------------

    def _check_stop(self, collection_key: str):
        if self._stop.is_set():
            raise SyncCancelled(f"Sync of {collection_key} interrupted")

    def _advance(self, result: CollectionResult, state: CollectionState):
        logger.debug("Collection %s: %s -> %s", result.collection_key, result.state.value, state.value)
        result.state = state

    def _classify(self, collection_key: str, asset, now: datetime.datetime) -> ClassifiedAsset:
        first_seen = self.manifest.touch(collection_key, asset.id, now)
        verdict = classify(first_seen, now, self.keep_days)
        filename = stable_filename(asset.display_name, asset.id, asset.mime_type)
        path = compute_local_path(self.images_dir, collection_key, verdict.bucket, filename)
        return ClassifiedAsset(
            asset=asset,
            first_seen_at=first_seen,
            age_in_days=verdict.age_in_days,
            bucket=verdict.bucket,
            local_filename=filename,
            url=relative_url(path, self.site_root),
        )

    def _materialize(self, collection_key: str, item: ClassifiedAsset) -> ItemResult:
        """
        Download failures are recorded on the result, never raised.
        """
        destination = compute_local_path(self.images_dir, collection_key, item.bucket, item.local_filename)
        alternate = other_area_path(self.images_dir, collection_key, item.bucket, item.local_filename)
        try:
            self.fetcher.ensure_materialized(item.asset.id, destination, alternate)
        except (GallerySyncError, OSError) as e:
            logger.warning("Could not fetch %s (%s) for %s: %s",
                           item.asset.id, item.asset.display_name, collection_key, e)
            return ItemResult(item.asset.id, item, error=str(e))
        item.materialized = True
        return ItemResult(item.asset.id, item)


def run_sync(config: Optional[dict] = None,
             environ: Optional[Mapping[str, str]] = None,
             manifest_path: Path = MANIFEST_FILE) -> SyncReport:
    """
    Resolve configuration and credentials, then sync every collection.

    ConfigError propagates before any collection runs.
    """
    config = load_user_config() if config is None else config
    collections: Dict[str, str] = resolve_collections(config, environ)
    creds = AuthManager(environ=environ).authenticate()

    manifest = load_manifest(manifest_path)
    syncer = GallerySync(DriveClient(creds), manifest, manifest_path, keep_days=config.get("days", DEFAULT_KEEP_DAYS))
    return syncer.run(collections, workers=config.get("workers", 1))
