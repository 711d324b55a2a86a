"""
First-seen manifest: the only state that survives between runs.

On disk:
{
  "version": 1,
  "entries": {
    "<collection key>": {
      "<drive file id>": "2024-05-01T12:00:00.000Z",
      ...
    }
  }
}
"""

import datetime
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from gallerysync.local_store import atomic_write_text
from gallerysync.models import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


class Manifest:
    """
    In-memory (collection, asset id) -> first-seen timestamp store.

    Entries are write-once: touch() only inserts, never overwrites. All
    access goes through a lock so collections synced on worker threads can
    share one manifest.
    """

    def __init__(self, entries: Optional[Dict[str, Dict[str, datetime.datetime]]] = None,
                 version: int = MANIFEST_VERSION):
        self.version = version
        self._entries: Dict[str, Dict[str, datetime.datetime]] = entries or {}
        self._lock = threading.Lock()

    def get(self, collection_key: str, asset_id: str) -> Optional[datetime.datetime]:
        with self._lock:
            return self._entries.get(collection_key, {}).get(asset_id)

    def touch(self, collection_key: str, asset_id: str, now: datetime.datetime) -> datetime.datetime:
        """
        Return the first-seen time for this identity, recording `now` if it
        has never been seen before.
        """
        with self._lock:
            seen = self._entries.setdefault(collection_key, {})
            if asset_id not in seen:
                seen[asset_id] = now
            return seen[asset_id]

    def collection_size(self, collection_key: str) -> int:
        with self._lock:
            return len(self._entries.get(collection_key, {}))

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "version": self.version,
                "entries": {
                    key: {aid: format_timestamp(ts) for aid, ts in sorted(ids.items())}
                    for key, ids in sorted(self._entries.items())
                },
            }

    @classmethod
    def from_dict(cls, data: dict) -> "Manifest":
        """
        Raises ValueError/TypeError/AttributeError on malformed input.
        Older manifests keep their entries under "firstSeen".
        """
        raw = data.get("entries", data.get("firstSeen", {}))
        entries = {}
        for key, ids in raw.items():
            entries[str(key)] = {str(aid): parse_timestamp(ts) for aid, ts in ids.items()}
        return cls(entries, version=int(data.get("version", MANIFEST_VERSION)))


def load_manifest(path: Path) -> Manifest:
    """
    Load the manifest. A missing or unreadable file means "no history" and
    yields an empty manifest.
    """
    if not path.exists():
        logger.info("No manifest at %s; starting with empty history.", path)
        return Manifest()
    try:
        with open(path, "r", encoding="utf-8") as f:
            return Manifest.from_dict(json.load(f))
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning("Manifest %s unreadable (%s); starting with empty history.", path, e)
        return Manifest()


def save_manifest(manifest: Manifest, path: Path):
    """
    Write the manifest in one atomic replace.
    """
    atomic_write_text(path, json.dumps(manifest.to_dict(), indent=2))
