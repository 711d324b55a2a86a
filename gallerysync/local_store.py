import json
import logging
import os
from pathlib import Path
from typing import Tuple

from gallerysync.models import Bucket, CollectionSummary

logger = logging.getLogger(__name__)

CURRENT_DIRNAME = "current"
ARCHIVE_DIRNAME = "archive"


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def collection_dirs(images_dir: Path, collection_key: str) -> Tuple[Path, Path]:
    """
    Return (current_dir, archive_dir) for a collection, creating both.
    """
    base = images_dir / collection_key
    return ensure_dir(base / CURRENT_DIRNAME), ensure_dir(base / ARCHIVE_DIRNAME)


def compute_local_path(images_dir: Path, collection_key: str, bucket: Bucket, filename: str) -> Path:
    """
    images/<collection>/current/<file> or images/<collection>/archive/<file>.
    """
    area = ARCHIVE_DIRNAME if bucket == Bucket.ARCHIVED else CURRENT_DIRNAME
    return images_dir / collection_key / area / filename


def other_area_path(images_dir: Path, collection_key: str, bucket: Bucket, filename: str) -> Path:
    other = Bucket.CURRENT if bucket == Bucket.ARCHIVED else Bucket.ARCHIVED
    return compute_local_path(images_dir, collection_key, other, filename)


def is_materialized(path: Path) -> bool:
    """
    A file counts as present only if it exists and is non-empty.
    """
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


def relative_url(path: Path, site_root: Path) -> str:
    """
    "./images/puppies/bouviers/current/x.jpg" style URL for the gallery page.
    """
    try:
        rel = path.resolve().relative_to(site_root.resolve())
    except ValueError:
        return path.as_posix()
    return f"./{rel.as_posix()}"


def partial_path(path: Path) -> Path:
    return path.with_name(path.name + ".part")


def remove_partial(path: Path):
    """
    Remove a leftover partial download, if any.
    """
    part = partial_path(path)
    try:
        part.unlink()
    except FileNotFoundError:
        pass


def atomic_write_text(path: Path, text: str):
    """
    Write to a sibling temp file and rename it over path, so readers only ever
    see the old or the new content.
    """
    ensure_dir(path.parent)
    tmp = partial_path(path)
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


def summary_path(data_dir: Path, collection_key: str) -> Path:
    return data_dir / f"photos-{collection_key}.json"


def write_summary(data_dir: Path, summary: CollectionSummary) -> Path:
    """
    Overwrite the collection's summary JSON in full.
    """
    path = summary_path(data_dir, summary.collection_key)
    atomic_write_text(path, json.dumps(summary.to_dict(), indent=2))
    return path


def move_local_file(old_path: Path, new_path: Path):
    """
    Move a local file from old_path to new_path, replacing anything there.
    """
    if not old_path.exists():
        return

    ensure_dir(new_path.parent)
    logger.info("Moving file from %s to %s", old_path, new_path)
    os.replace(old_path, new_path)
