"""Database sync job: schema pull/apply, backup export and publish."""

import os
import shutil
import threading
from contextlib import nullcontext
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Callable, Dict, List, Optional

from loguru import logger

from src.clients import GitClient, MySQLDumpClient, create_mysql_connection
from src.utils.config import Config, ConnectionConfig
from src.utils.exceptions import NothingToCommitError, SchemaFileNotFoundError

# Statements containing any of these are data changes and are never re-applied
DATA_MODIFICATION_KEYWORDS = ("INSERT", "UPDATE", "DELETE")


def split_sql_statements(sql_content: str) -> List[str]:
    """Split SQL text on ';' into trimmed statements.

    Empty pieces and pieces starting with a '--' comment are dropped.
    """
    statements = []
    for piece in sql_content.split(";"):
        statement = piece.strip()
        if statement and not statement.startswith("--"):
            statements.append(statement)
    return statements


def is_data_modification(statement: str) -> bool:
    upper = statement.upper()
    return any(keyword in upper for keyword in DATA_MODIFICATION_KEYWORDS)


def backup_timestamp(now: Optional[datetime] = None) -> str:
    """Compact UTC timestamp, e.g. 20240105T020000."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S").replace("-", "").replace(":", "")


class DatabaseSyncJob:
    """Keeps a MySQL database in step with a git-tracked schema repository.

    Each operation opens and closes its own database connection. With
    serialize_operations enabled, all public operations share one
    re-entrant lock so overlapping scheduled runs execute one at a time.
    """

    def __init__(self, app_config: Config, connection_config: ConnectionConfig,
                 vcs_client=None, dump_client=None,
                 connection_factory: Optional[Callable] = None):
        """Initialize the sync job.

        Args:
            app_config: Application configuration
            connection_config: Database connection settings
            vcs_client: Object with clone/pull/add/commit/push (defaults to GitClient)
            dump_client: Object with dump(connection, output_path) (defaults to MySQLDumpClient)
            connection_factory: Callable taking a ConnectionConfig and returning a
                DB-API connection (defaults to a PyMySQL connection)
        """
        self.repository = app_config.repository
        self.backup = app_config.backup
        self.tracked_tables = list(app_config.database.tracked_tables)
        self.connection_config = connection_config

        self.vcs_client = vcs_client or GitClient()
        self.dump_client = dump_client or MySQLDumpClient(
            dump_command=self.backup.dump_command,
            timeout=self.backup.dump_timeout_seconds,
        )
        self.connection_factory = connection_factory or partial(
            create_mysql_connection,
            connect_timeout=app_config.database.connect_timeout,
        )

        if app_config.concurrency.serialize_operations:
            self._lock = threading.RLock()
        else:
            self._lock = nullcontext()

    @property
    def local_dir(self) -> str:
        return self.repository.local_dir

    def create_connection(self):
        self.connection_config.require_complete()
        return self.connection_factory(self.connection_config)

    def pull_latest_from_remote(self) -> bool:
        """Clone the schema repository, or pull it if already cloned.

        Returns:
            True on success, False if any git command failed
        """
        with self._lock:
            try:
                logger.info("Pulling latest database schema from remote")

                if not os.path.exists(self.local_dir):
                    self.vcs_client.clone(self.repository.remote_url, self.local_dir)
                else:
                    self.vcs_client.pull(self.local_dir, self.repository.branch)

                logger.info("Successfully pulled latest changes from remote")
                return True
            except Exception as e:
                logger.error(f"Error pulling from remote: {e}")
                return False

    def locate_latest_schema_file(self) -> str:
        """Return the last schema file in directory listing order.

        Listing order is whatever the filesystem reports; it is not sorted
        by name or modification time.

        Raises:
            SchemaFileNotFoundError: if no file has the schema extension
        """
        schema_files = [
            name for name in os.listdir(self.local_dir)
            if name.endswith(self.repository.schema_extension)
        ]

        if not schema_files:
            raise SchemaFileNotFoundError(
                f"No SQL schema file found in repository: {self.local_dir}"
            )

        return os.path.join(self.local_dir, schema_files[-1])

    def apply_schema(self) -> bool:
        """Apply schema statements from the latest schema file.

        INSERT/UPDATE/DELETE statements are skipped. "already exists"
        errors are ignored; other statement errors are logged and the
        remaining statements still run.

        Returns:
            True once the file has been processed, False if the connection,
            file lookup or read failed
        """
        with self._lock:
            try:
                connection = self.create_connection()
            except Exception as e:
                logger.error(f"Error syncing database: {e}")
                return False

            try:
                schema_file = self.locate_latest_schema_file()
                with open(schema_file, "r", encoding="utf-8") as f:
                    sql_content = f.read()

                logger.info(f"Applying database schema updates from {schema_file}")

                executed, skipped, failed = 0, 0, 0
                with connection.cursor() as cursor:
                    for statement in split_sql_statements(sql_content):
                        if is_data_modification(statement):
                            skipped += 1
                            continue

                        try:
                            cursor.execute(statement)
                            executed += 1
                        except Exception as e:
                            if "already exists" in str(e):
                                logger.debug(f"Skipping existing object: {statement[:100]}")
                                continue
                            failed += 1
                            logger.error(f"Error executing statement: {statement[:100]}...")
                            logger.error(str(e))

                logger.info(
                    f"Database schema sync completed: {executed} executed, "
                    f"{skipped} data statements skipped, {failed} failed"
                )
                return True
            except Exception as e:
                logger.error(f"Error syncing database: {e}")
                return False
            finally:
                connection.close()

    def sync_tracked_tables(self) -> Dict[str, int]:
        """Log the row count of each tracked table.

        No rows are copied or changed; this only reports counts.

        Returns:
            Mapping of table name to row count for the tables that were counted
        """
        with self._lock:
            counts = {}
            try:
                connection = self.create_connection()
            except Exception as e:
                logger.error(f"Error syncing tables: {e}")
                return counts

            try:
                logger.info("Syncing table data")
                for table in self.tracked_tables:
                    count = self._count_rows(connection, table)
                    if count is not None:
                        counts[table] = count
                logger.info("Table data sync completed")
            finally:
                connection.close()

            return counts

    def _count_rows(self, connection, table: str) -> Optional[int]:
        try:
            logger.info(f"Syncing {table}...")
            with connection.cursor() as cursor:
                cursor.execute(f"SELECT COUNT(*) FROM `{table}`")
                row = cursor.fetchone()
            count = row[0]
            logger.info(f"{table}: {count} records")
            return count
        except Exception as e:
            logger.error(f"Error syncing {table}: {e}")
            return None

    def export_to_file(self) -> str:
        """Dump the database to a timestamped file in the backup directory.

        Returns:
            Path of the written dump file

        Raises:
            ConfigurationError: if the connection settings are incomplete
            DumpError: if the dump utility fails
        """
        with self._lock:
            try:
                self.connection_config.require_complete()

                filename = f"{self.backup.prefix}_{backup_timestamp()}.sql"
                backup_dir = Path(self.backup.backup_dir)
                backup_dir.mkdir(parents=True, exist_ok=True)
                filepath = str(backup_dir / filename)

                logger.info("Exporting database to file")
                self.dump_client.dump(self.connection_config, filepath)

                logger.info(f"Database exported to: {filepath}")
                return filepath
            except Exception as e:
                logger.error(f"Error exporting database: {e}")
                raise

    def publish_to_remote(self, filepath: str) -> bool:
        """Copy a backup into the tracked directory and push it.

        Returns:
            True if the file was committed and pushed, False otherwise
            (including when there was nothing new to commit)
        """
        with self._lock:
            try:
                filename = os.path.basename(filepath)
                shutil.copy2(filepath, os.path.join(self.local_dir, filename))

                logger.info("Pushing backup to remote")
                message = f"Automated database backup - {datetime.now(timezone.utc).isoformat()}"

                self.vcs_client.add(self.local_dir, filename)
                self.vcs_client.commit(self.local_dir, message)
                self.vcs_client.push(self.local_dir, self.repository.branch)

                logger.info("Successfully pushed backup to remote")
                return True
            except NothingToCommitError:
                logger.warning(f"Nothing to commit for {filepath}, skipping push")
                return False
            except Exception as e:
                logger.error(f"Error pushing to remote: {e}")
                return False

    def export_and_publish(self) -> bool:
        with self._lock:
            filepath = self.export_to_file()
            return self.publish_to_remote(filepath)

    def refresh_schema(self) -> Dict:
        """Pull the schema repository then apply its latest schema file."""
        with self._lock:
            pulled = self.pull_latest_from_remote()
            if not pulled:
                logger.warning("Pull failed, applying schema from existing working copy")
            return {
                "pulled": pulled,
                "schema_applied": self.apply_schema(),
            }

    def full_sync(self) -> Dict:
        """Execute pull, schema apply, table sync, export and publish in order.

        A failed pull aborts the run. Apply, table sync and publish failures
        are logged and the run continues; an export failure propagates.

        Returns:
            Dictionary with sync results
        """
        with self._lock:
            logger.info("Starting full database sync")
            start_time = datetime.now(timezone.utc)

            sync_result = {
                "start_time": start_time.isoformat(),
                "status": "running",
                "pulled": False,
                "schema_applied": False,
                "table_counts": {},
                "backup_path": None,
                "published": False,
            }

            sync_result["pulled"] = self.pull_latest_from_remote()
            if not sync_result["pulled"]:
                logger.error("Failed to pull from remote, aborting sync")
                sync_result["status"] = "aborted"
                return self._finish(sync_result, start_time)

            sync_result["schema_applied"] = self.apply_schema()
            sync_result["table_counts"] = self.sync_tracked_tables()
            sync_result["backup_path"] = self.export_to_file()
            sync_result["published"] = self.publish_to_remote(sync_result["backup_path"])

            sync_result["status"] = "completed"
            self._finish(sync_result, start_time)
            logger.info(f"Full sync completed: {sync_result}")
            return sync_result

    @staticmethod
    def _finish(sync_result: Dict, start_time: datetime) -> Dict:
        end_time = datetime.now(timezone.utc)
        sync_result["end_time"] = end_time.isoformat()
        sync_result["duration_seconds"] = (end_time - start_time).total_seconds()
        return sync_result
