#!/usr/bin/env python3
"""
Entry point for the gallery photo sync.

Exit status: 0 when every collection synced, 1 when any collection failed,
2 when configuration or credentials are unusable.
"""

import logging
import sys

from gallerysync.config import load_user_config, resolve_log_level
from gallerysync.errors import ConfigError
from gallerysync.syncer import run_sync


def main() -> int:
    try:
        config = load_user_config()
        level = resolve_log_level(config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        report = run_sync(config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    print(report.describe())
    if not report.ok:
        failed = ", ".join(r.collection_key for r in report.failed)
        print(f"\nSync finished with failed collection(s): {failed}", file=sys.stderr)
        return 1

    print("\nAll sync operations complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
