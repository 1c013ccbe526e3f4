"""Exception hierarchy for the database sync service."""


class DatabaseSyncError(Exception):
    """Base class for all sync service errors."""


class ConfigurationError(DatabaseSyncError):
    """Raised when configuration is missing, unreadable or incomplete."""


class SchemaFileNotFoundError(DatabaseSyncError):
    """Raised when the tracked directory holds no schema file."""


class VcsError(DatabaseSyncError):
    """Raised when a version-control command fails."""


class NothingToCommitError(VcsError):
    """Raised when a commit is attempted with no staged changes."""


class DumpError(DatabaseSyncError):
    """Raised when the database dump utility fails."""
