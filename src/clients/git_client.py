"""Git command-line client for the tracked schema repository."""

import subprocess
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..utils.exceptions import NothingToCommitError, VcsError


class GitClient:
    """Runs git commands against a local working copy.

    Every command is attempted once; failures raise VcsError. No timeout is
    applied unless one is given.
    """

    def __init__(self, git_executable: str = "git", timeout: Optional[int] = None):
        self.git_executable = git_executable
        self.timeout = timeout

    def _run(self, args: List[str], cwd: Optional[str] = None) -> subprocess.CompletedProcess:
        cmd = [self.git_executable, *args]
        logger.debug(f"Running: {' '.join(cmd)} (cwd={cwd or '.'})")

        try:
            return subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            output = " ".join(
                part.strip() for part in (e.stderr, e.stdout) if part and part.strip()
            )
            raise VcsError(f"git {args[0]} failed: {output}") from e
        except subprocess.TimeoutExpired as e:
            raise VcsError(f"git {args[0]} timed out after {self.timeout} seconds") from e
        except OSError as e:
            raise VcsError(f"Cannot run {self.git_executable}: {e}") from e

    def clone(self, url: str, directory: str) -> None:
        Path(directory).parent.mkdir(parents=True, exist_ok=True)
        self._run(["clone", url, str(directory)])

    def pull(self, directory: str, branch: str = "main") -> None:
        self._run(["pull", "origin", branch], cwd=directory)

    def add(self, directory: str, filename: str) -> None:
        self._run(["add", filename], cwd=directory)

    def commit(self, directory: str, message: str) -> None:
        """Commit staged changes.

        Raises:
            NothingToCommitError: if the working tree has nothing staged
        """
        try:
            self._run(["commit", "-m", message], cwd=directory)
        except VcsError as e:
            if "nothing to commit" in str(e) or "nothing added to commit" in str(e):
                raise NothingToCommitError(str(e)) from e
            raise

    def push(self, directory: str, branch: str = "main") -> None:
        self._run(["push", "origin", branch], cwd=directory)
