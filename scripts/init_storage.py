#!/usr/bin/env python3
"""
Storage initialization script for the locale directory.

Installs the configured storage backend and applies the players schema.

Usage:
    python scripts/init_storage.py [--storage NAME] [--data-folder PATH]

Options:
    --storage NAME        Backend to install (file, sqlite, postgresql; default: MULTILANG_STORAGE)
    --data-folder PATH    Data folder (default: MULTILANG_DATA_FOLDER or ./data)

This script is idempotent - safe to run multiple times.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from multilang.config import Settings
from multilang.exceptions import MultiLangError
from multilang.storage.manager import StorageManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def init_storage(settings: Settings) -> bool:
    """
    Install the configured backend and report what it holds.

    Args:
        settings: Settings to install against

    Returns:
        bool: True if initialization succeeded
    """
    manager = StorageManager(settings)
    try:
        storage_type = await manager.reload()
        logger.info(f"✓ Installed {storage_type.value} storage")

        database = manager.database
        if database is not None:
            for table in database.tables:
                columns = database.table_columns(table.name)
                logger.info(f"✓ Table {table.name}: {', '.join(columns)}")

        logger.info(f"  players: {await manager.count()} records")
        return True

    except MultiLangError as e:
        logger.error(f"Storage initialization failed: {e}")
        return False

    finally:
        await manager.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Initialize locale directory storage")
    parser.add_argument("--storage", default=None, help="Storage backend name")
    parser.add_argument("--data-folder", default=None, help="Data folder path")

    args = parser.parse_args()

    overrides = {}
    if args.storage:
        overrides["storage"] = args.storage
    if args.data_folder:
        overrides["data_folder"] = Path(args.data_folder)

    settings = Settings(**overrides)
    settings.validate_configuration()

    success = asyncio.run(init_storage(settings))

    if not success:
        logger.error("❌ Storage initialization failed")
        sys.exit(1)

    logger.info("")
    logger.info("=== Storage Ready ===")
    logger.info(f"Data folder: {settings.data_folder.absolute()}")


if __name__ == "__main__":
    main()
