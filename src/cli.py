"""Command-line entry points for the database sync service.

Usage:
    db-sync [pull|push|sync]
    db-sync-scheduler

The application config path is taken from DB_SYNC_CONFIG (default
config/config.yaml); the database env file from ENV_CONFIG_PATH.
"""

import argparse
import os
import sys
from typing import List, Optional, Tuple

from loguru import logger

from src.scheduler.scheduler_service import SchedulerService
from src.scheduler.sync_job import DatabaseSyncJob
from src.utils.config import Config, load_config, load_connection_config
from src.utils.logging_config import setup_logging

USAGE = "Usage: db-sync [pull|push|sync]"


def build_sync_job() -> Tuple[Config, DatabaseSyncJob]:
    """Load configuration, set up logging and construct the sync job."""
    app_config = load_config(os.getenv("DB_SYNC_CONFIG"))
    setup_logging(app_config.logging)
    connection_config = load_connection_config(app_config.database.env_config_path)
    missing = connection_config.missing_fields()
    if missing:
        logger.warning(f"Database env file is missing {', '.join(missing)}; database operations will fail")
    return app_config, DatabaseSyncJob(app_config, connection_config)


def run_command(command: Optional[str], sync_job: DatabaseSyncJob) -> None:
    """Dispatch one CLI command; anything unrecognized prints usage."""
    if command == "pull":
        sync_job.pull_latest_from_remote()
    elif command == "push":
        sync_job.export_and_publish()
    elif command == "sync":
        sync_job.full_sync()
    else:
        print(USAGE)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for db-sync."""
    parser = argparse.ArgumentParser(prog="db-sync", usage=USAGE, add_help=False)
    parser.add_argument("command", nargs="?")
    args, _ = parser.parse_known_args(argv)

    if args.command not in ("pull", "push", "sync"):
        print(USAGE)
        return

    _, sync_job = build_sync_job()
    run_command(args.command, sync_job)


def scheduler_main() -> None:
    """Entry point for db-sync-scheduler; runs until interrupted."""
    app_config, sync_job = build_sync_job()
    scheduler = SchedulerService(
        sync_job,
        app_config.scheduler,
        run_in_threads=not app_config.concurrency.serialize_operations,
    )

    scheduler.run_forever()
    logger.info("Scheduler exited")
    sys.exit(0)


if __name__ == "__main__":
    main()
