#!/usr/bin/env python3
"""Prepare Reelkeeper storage.

Creates the Postgres key-value table when the Postgres backend is configured, then
loads the stored reels so records written by older app versions are migrated to the
current version and written back.
"""

import os
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reelkeeper.config import load_config  # noqa: E402
from reelkeeper.errors import ReelKeeperError  # noqa: E402
from reelkeeper.migrations import APP_VERSION  # noqa: E402
from reelkeeper.services.session import build_kv_store  # noqa: E402
from reelkeeper.storage.reels import ReelStore  # noqa: E402
from reelkeeper.utils.logging import configure_logging, get_logger  # noqa: E402

configure_logging("reelkeeper-migrations", level=os.getenv("LOG_LEVEL", "INFO"))
logger = get_logger(__name__)


def main() -> None:
    """Main entry point."""
    try:
        config = load_config()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logger.info(f"Opening {config.storage} storage...")
    try:
        kv = build_kv_store(config)
    except Exception as e:
        logger.error(f"✗ Could not open storage: {e}")
        sys.exit(1)

    try:
        store = ReelStore(kv)
        logger.info(f"✓ {len(store)} reels at version {APP_VERSION}")
    except ReelKeeperError as e:
        logger.error(f"✗ Reel migration failed: {e}")
        sys.exit(1)
    finally:
        kv.close()

    logger.info("✓ All migrations completed successfully")


if __name__ == "__main__":
    main()
