"""mysqldump wrapper producing full SQL dumps."""

import os
import subprocess
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..utils.config import ConnectionConfig
from ..utils.exceptions import DumpError


class MySQLDumpClient:
    """Writes a full SQL dump of one database to a file via mysqldump."""

    def __init__(self, dump_command: str = "mysqldump", timeout: Optional[int] = None):
        self.dump_command = dump_command
        self.timeout = timeout

    def build_command(self, connection: ConnectionConfig) -> List[str]:
        # The password travels in MYSQL_PWD, never on the argument list
        return [
            self.dump_command,
            "-h", connection.host,
            "-P", str(connection.port),
            "-u", connection.user,
            connection.database,
            "--routines",
            "--triggers",
            "--single-transaction",
        ]

    def dump(self, connection: ConnectionConfig, output_path: str) -> str:
        """
        Dump the database to output_path.

        Args:
            connection: Complete connection settings
            output_path: File the dump is written to

        Returns:
            output_path

        Raises:
            DumpError: if mysqldump cannot be run or exits non-zero
        """
        cmd = self.build_command(connection)
        env = os.environ.copy()
        env["MYSQL_PWD"] = connection.password or ""

        logger.info(f"Running: {' '.join(cmd)} > {output_path}")

        try:
            with open(output_path, "wb") as out:
                result = subprocess.run(
                    cmd,
                    env=env,
                    stdout=out,
                    stderr=subprocess.PIPE,
                    timeout=self.timeout,
                )
        except subprocess.TimeoutExpired as e:
            self._discard(output_path)
            raise DumpError(f"{self.dump_command} timed out after {self.timeout} seconds") from e
        except OSError as e:
            self._discard(output_path)
            raise DumpError(f"Cannot run {self.dump_command}: {e}") from e

        if result.returncode != 0:
            self._discard(output_path)
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise DumpError(f"{self.dump_command} exited with code {result.returncode}: {stderr}")

        return output_path

    @staticmethod
    def _discard(output_path: str) -> None:
        path = Path(output_path)
        if path.exists():
            path.unlink()
            logger.warning(f"Removed incomplete dump file: {output_path}")
