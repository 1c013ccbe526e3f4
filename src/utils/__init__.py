"""Utility modules for the database sync service."""

from .config import Config, ConnectionConfig, load_config, load_connection_config
from .exceptions import (
    ConfigurationError,
    DatabaseSyncError,
    DumpError,
    NothingToCommitError,
    SchemaFileNotFoundError,
    VcsError,
)

__all__ = [
    'Config', 'ConnectionConfig', 'load_config', 'load_connection_config',
    'ConfigurationError', 'DatabaseSyncError', 'DumpError',
    'NothingToCommitError', 'SchemaFileNotFoundError', 'VcsError',
]
