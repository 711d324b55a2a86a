"""
Plain data types passed between the lister, manifest, namer, fetcher and
orchestrator.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


def format_timestamp(dt: datetime.datetime) -> str:
    """
    UTC ISO-8601 with millisecond precision and a Z suffix.
    """
    dt = dt.astimezone(datetime.timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime.datetime:
    dt = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


class Bucket(str, Enum):
    CURRENT = "current"
    ARCHIVED = "archived"


class CollectionState(str, Enum):
    LISTING = "listing"
    CLASSIFYING = "classifying"
    MATERIALIZING = "materializing"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class RemoteAsset:
    """
    One image file as reported by a single Drive listing call.
    """
    id: str
    display_name: str
    mime_type: str = ""
    created_at: Optional[datetime.datetime] = None
    modified_at: Optional[datetime.datetime] = None


@dataclass
class ClassifiedAsset:
    asset: RemoteAsset
    first_seen_at: datetime.datetime
    age_in_days: int
    bucket: Bucket
    local_filename: str
    url: str = ""
    materialized: bool = False


@dataclass
class ItemResult:
    """
    Outcome for one asset: either a classified asset (ok) or an error reason.
    A failed download still carries the classified asset so the summary can
    list it as not materialized.
    """
    asset_id: str
    classified: Optional[ClassifiedAsset] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CollectionSummary:
    collection_key: str
    generated_at: datetime.datetime
    retention_threshold_days: int
    current_items: List[ClassifiedAsset] = field(default_factory=list)
    archived_count: int = 0

    def to_dict(self) -> dict:
        # Shape consumed by the gallery front-end.
        return {
            "collectionKey": self.collection_key,
            "generatedAt": format_timestamp(self.generated_at),
            "retentionThresholdDays": self.retention_threshold_days,
            "currentItems": [
                {
                    "filename": item.local_filename,
                    "url": item.url,
                    "sourceDisplayName": item.asset.display_name,
                    "firstSeenAt": format_timestamp(item.first_seen_at),
                    "ageInDays": item.age_in_days,
                    "materialized": item.materialized,
                }
                for item in self.current_items
            ],
            "archivedCount": self.archived_count,
        }


@dataclass
class CollectionResult:
    collection_key: str
    state: CollectionState = CollectionState.LISTING
    items: List[ItemResult] = field(default_factory=list)
    summary: Optional[CollectionSummary] = None
    error: Optional[str] = None

    @property
    def failed_items(self) -> List[ItemResult]:
        return [item for item in self.items if not item.ok]


@dataclass
class SyncReport:
    results: List[CollectionResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.state == CollectionState.DONE for r in self.results)

    @property
    def failed(self) -> List[CollectionResult]:
        return [r for r in self.results if r.state == CollectionState.FAILED]

    def describe(self) -> str:
        """
        Human-readable run summary, one line per collection.
        """
        lines = []
        for r in self.results:
            if r.state == CollectionState.FAILED:
                lines.append(f"{r.collection_key}: FAILED ({r.error})")
                continue
            current = len(r.summary.current_items) if r.summary else 0
            archived = r.summary.archived_count if r.summary else 0
            line = f"{r.collection_key}: current={current}, archived={archived}"
            if r.failed_items:
                line += f", download failures={len(r.failed_items)}"
            lines.append(line)
        return "\n".join(lines)
