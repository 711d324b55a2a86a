"""
Deterministic local filenames for Drive images.

<sanitized name>_<sha1(file id)[:10]><ext>, e.g. "Buddy_at_8_weeks_3f2a9c01de.jpg".
"""

import hashlib
import posixpath
import re
from pathlib import PurePosixPath
from typing import Optional

FINGERPRINT_LENGTH = 10
PLACEHOLDER_BASE = "photo"
DEFAULT_EXTENSION = ".jpg"

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".heic", ".heif"}

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/heic": ".heic",
    "image/heif": ".heif",
}

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-zA-Z0-9._-]")


def fingerprint(asset_id: str) -> str:
    return hashlib.sha1(asset_id.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def safe_filename(name: str) -> str:
    """
    Whitespace runs become underscores, anything outside [A-Za-z0-9._-] is
    dropped. Falls back to PLACEHOLDER_BASE when nothing is left.
    """
    base = _DISALLOWED.sub("", _WHITESPACE.sub("_", name.strip()))
    return base or PLACEHOLDER_BASE


def image_extension(filename: str) -> Optional[str]:
    """
    Lower-cased suffix of filename if it is a known image extension.
    """
    suffix = PurePosixPath(filename or "").suffix.lower()
    return suffix if suffix in IMAGE_EXTENSIONS else None


def resolve_extension(display_name: str, mime_type: Optional[str] = None) -> str:
    ext = image_extension(display_name)
    if ext:
        return ext
    mime = (mime_type or "").split(";")[0].strip().lower()
    return MIME_EXTENSIONS.get(mime, DEFAULT_EXTENSION)


def stable_filename(display_name: str, asset_id: str, mime_type: Optional[str] = None) -> str:
    """
    Same asset id always yields the same filename; two files sharing a
    display name but not an id never collide.
    """
    display_name = display_name or ""
    base = safe_filename(posixpath.splitext(display_name)[0])
    return f"{base}_{fingerprint(asset_id)}{resolve_extension(display_name, mime_type)}"
