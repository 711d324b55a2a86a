import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from gallerysync.errors import ConfigError

logger = logging.getLogger(__name__)

# === PATH CONFIGURATION ===
DATA_DIR = Path("data")
IMAGES_DIR = Path("images") / "puppies"

CONFIG_FILE = Path("sync_config.json")
MANIFEST_FILE = DATA_DIR / "photo-manifest.json"

# === SCOPES ===
SCOPES = [
    "https://www.googleapis.com/auth/drive.readonly"
]

# === RETENTION ===
DEFAULT_KEEP_DAYS = 90
DEFAULT_COLLECTIONS = ["bouviers", "lowchen"]

COLLECTIONS_ENV = "GALLERYSYNC_COLLECTIONS"
LOG_LEVEL_ENV = "GALLERYSYNC_LOG_LEVEL"


def _is_int(value) -> bool:
    # JSON true/false arrive as bool, which is an int subclass.
    return isinstance(value, int) and not isinstance(value, bool)


def load_user_config(path: Path = CONFIG_FILE) -> dict:
    """
    Load the user's sync_config.json (days, collections, workers, logLevel).
    Fallback to defaults for anything not set.
    """
    config = {
        "days": DEFAULT_KEEP_DAYS,
        "collections": list(DEFAULT_COLLECTIONS),
        "workers": 1,
        "logLevel": "INFO",
    }
    if path.exists():
        try:
            with open(path, "r") as f:
                config.update(json.load(f))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read config file '{path}': {e}") from e
    else:
        logger.info("Config file '%s' not found. Using defaults.", path)

    if not _is_int(config["days"]) or config["days"] < 0:
        raise ConfigError(f"'days' must be a non-negative integer, got {config['days']!r}")
    if not _is_int(config["workers"]) or config["workers"] < 1:
        raise ConfigError(f"'workers' must be a positive integer, got {config['workers']!r}")
    return config


def folder_env_var(collection_key: str) -> str:
    """
    bouviers -> GDRIVE_BOUVIERS_FOLDER_ID
    """
    slug = "".join(c if c.isalnum() else "_" for c in collection_key.upper())
    return f"GDRIVE_{slug}_FOLDER_ID"


def resolve_collections(config: dict, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Build the collection key -> Drive folder id mapping.

    "collections" in the config may be a list of keys or a mapping of key to
    folder id. GALLERYSYNC_COLLECTIONS replaces the key list, and
    GDRIVE_<KEY>_FOLDER_ID always wins over a folder id from the file.
    Every collection must end up with a folder id.
    """
    environ = os.environ if environ is None else environ

    raw = config.get("collections", [])
    if isinstance(raw, dict):
        from_file = {str(k): str(v or "") for k, v in raw.items()}
    else:
        from_file = {str(k): "" for k in raw}

    keys: List[str] = list(from_file)
    override = environ.get(COLLECTIONS_ENV, "").strip()
    if override:
        keys = [k.strip() for k in override.split(",") if k.strip()]

    if not keys:
        raise ConfigError("No collections configured")

    collections = {}
    missing = []
    for key in keys:
        folder_id = environ.get(folder_env_var(key), "").strip() or from_file.get(key, "").strip()
        if not folder_id:
            missing.append(folder_env_var(key))
        collections[key] = folder_id

    if missing:
        raise ConfigError(f"Missing folder id(s): {', '.join(missing)}")
    return collections


def resolve_log_level(config: dict, environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    level = str(environ.get(LOG_LEVEL_ENV) or config.get("logLevel") or "INFO").upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"Unknown log level {level!r}")
    return level
