"""
Pytest configuration and fixtures for database sync tests.
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest
from loguru import logger

from src.scheduler.sync_job import DatabaseSyncJob
from src.utils.config import (
    BackupConfig,
    Config,
    ConnectionConfig,
    RepositoryConfig,
)
from src.utils.exceptions import DumpError, NothingToCommitError, VcsError


class FakeCursor:
    """Cursor that records statements and raises configured errors."""

    def __init__(self, connection):
        self.connection = connection
        self.last_statement = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, statement):
        self.last_statement = statement
        self.connection.executed.append(statement)
        for pattern, error in self.connection.errors.items():
            if pattern in statement:
                raise error

    def fetchone(self):
        for table, count in self.connection.row_counts.items():
            if f"`{table}`" in self.last_statement:
                return (count,)
        return None


class FakeConnection:
    """In-memory stand-in for a DB-API connection."""

    def __init__(self):
        self.executed = []
        self.errors = {}
        self.row_counts = {}
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True


class FakeVcsClient:
    """Records git operations instead of running them."""

    def __init__(self):
        self.calls = []
        self.fail_on = set()
        self.nothing_to_commit = False

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise VcsError(f"git {name} failed: simulated")

    def clone(self, url, directory):
        self._record("clone", url, directory)
        Path(directory).mkdir(parents=True, exist_ok=True)

    def pull(self, directory, branch="main"):
        self._record("pull", directory, branch)

    def add(self, directory, filename):
        self._record("add", directory, filename)

    def commit(self, directory, message):
        self._record("commit", directory, message)
        if self.nothing_to_commit:
            raise NothingToCommitError("git commit failed: nothing to commit, working tree clean")

    def push(self, directory, branch="main"):
        self._record("push", directory, branch)

    def names(self):
        return [call[0] for call in self.calls]


class FakeDumpClient:
    """Writes a small dump file, or fails when told to."""

    def __init__(self):
        self.dumps = []
        self.fail = False

    def dump(self, connection, output_path):
        self.dumps.append(output_path)
        if self.fail:
            raise DumpError("mysqldump exited with code 2: Access denied")
        with open(output_path, "w") as f:
            f.write("-- MySQL dump\nCREATE TABLE t (id INT);\n")
        return output_path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def app_config(temp_dir):
    """Application config pointing at directories inside temp_dir."""
    return Config(
        repository=RepositoryConfig(
            github_repo="acme/db-scripts",
            local_dir=os.path.join(temp_dir, "db-scripts"),
        ),
        backup=BackupConfig(backup_dir=os.path.join(temp_dir, "backups")),
    )


@pytest.fixture
def connection_config():
    return ConnectionConfig(
        host="db.local",
        user="sync",
        password="secret",
        database="sm_db",
        port=3306,
    )


@pytest.fixture
def fake_connection():
    return FakeConnection()


@pytest.fixture
def fake_vcs():
    return FakeVcsClient()


@pytest.fixture
def fake_dump():
    return FakeDumpClient()


@pytest.fixture
def sync_job(app_config, connection_config, fake_vcs, fake_dump, fake_connection):
    """DatabaseSyncJob wired to in-memory fakes."""
    return DatabaseSyncJob(
        app_config,
        connection_config,
        vcs_client=fake_vcs,
        dump_client=fake_dump,
        connection_factory=lambda config: fake_connection,
    )


@pytest.fixture
def tracked_dir(app_config):
    """Create the local working copy directory."""
    path = Path(app_config.repository.local_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def log_messages():
    """Capture loguru output as a list of formatted lines."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="DEBUG", format="{level} | {message}")
    yield messages
    logger.remove(handler_id)
