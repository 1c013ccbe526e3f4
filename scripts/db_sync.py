#!/usr/bin/env python3
"""
Standalone script for one-off database sync operations.

Usage:
    python db_sync.py [pull|push|sync]

    pull  - clone or pull the schema repository
    push  - export the database and publish the dump to the repository
    sync  - pull, apply schema, count tracked tables, export and publish

Crontab example for a nightly sync:
    0 2 * * * /opt/db-sync/venv/bin/python /opt/db-sync/scripts/db_sync.py sync >> /opt/db-sync/logs/db_sync.log 2>&1
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from src.cli import main


if __name__ == "__main__":
    main()
