"""Loguru sink setup shared by the CLI entry points."""

import sys

from loguru import logger

from .config import LoggingConfig


def setup_logging(logging_config: LoggingConfig) -> None:
    """Replace the default loguru sink with the configured ones."""
    logger.remove()
    logger.add(sys.stderr, level=logging_config.level, format=logging_config.format)

    if logging_config.file:
        logger.add(
            logging_config.file,
            level=logging_config.level,
            format=logging_config.format,
            rotation=logging_config.rotation,
            retention=logging_config.retention,
        )
        logger.info(f"Logging to file: {logging_config.file}")
