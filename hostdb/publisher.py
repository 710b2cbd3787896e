"""
Manifest publishing.

Writes the canonical manifest to disk and, in CI, commits and pushes it.
Pushes are retried a bounded number of times: after a rejection the remote
branch is fetched and the local commit rebased onto it, then the caller's
refresh callback recomputes the manifest against the rebased file so the
retry carries a fresh result rather than a replay of the stale one.

A rebase conflict is never resolved automatically; the rebase is aborted
and PublishConflictError is raised.
"""

import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional

from hostdb.canonical import serialize_manifest
from hostdb.config import (
    DEFAULT_COMMIT_USER_EMAIL,
    DEFAULT_COMMIT_USER_NAME,
    DEFAULT_GIT_BRANCH,
    DEFAULT_GIT_REMOTE,
    DEFAULT_PUSH_ATTEMPTS,
    DEFAULT_RETRY_BASE_DELAY,
)
from hostdb.manifest import Manifest, write_text_atomic

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 120  # seconds


# ============================================================================
# Exceptions
# ============================================================================


class PublishError(Exception):
    """Raised when the manifest could not be published."""

    pass


class GitError(PublishError):
    """Raised when a git command fails."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class PublishConflictError(PublishError):
    """Raised when rebasing onto the remote branch conflicts."""

    pass


# ============================================================================
# Manifest File
# ============================================================================


def write_manifest(path: Path, manifest: Manifest, changed: bool) -> bool:
    """
    Write the canonical manifest if anything differs from the file on disk.

    lastUpdated is bumped only when the file is actually rewritten.

    Args:
        path: Destination (releases.json)
        manifest: Manifest to write
        changed: Whether reconciliation changed any entry

    Returns:
        True if the file was written
    """
    path = Path(path)
    try:
        current: Optional[str] = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        current = None

    if not changed and current == serialize_manifest(manifest):
        logger.info(f"{path} is already up to date")
        return False

    manifest.touch()
    write_text_atomic(path, serialize_manifest(manifest))
    logger.info(f"Wrote {path}")
    return True


# ============================================================================
# GitPublisher Class
# ============================================================================


class GitPublisher:
    """
    Commits and pushes the manifest with retry-on-rejection.

    Attributes:
        repo_dir: Working tree containing the manifest
        remote: Remote name
        branch: Branch to push
        attempts: Push attempts before giving up
        base_delay: Delay before retry n is base_delay * 2**n seconds
    """

    def __init__(
        self,
        repo_dir: Path,
        remote: str = DEFAULT_GIT_REMOTE,
        branch: str = DEFAULT_GIT_BRANCH,
        attempts: int = DEFAULT_PUSH_ATTEMPTS,
        base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        user_name: str = DEFAULT_COMMIT_USER_NAME,
        user_email: str = DEFAULT_COMMIT_USER_EMAIL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.repo_dir = Path(repo_dir)
        self.remote = remote
        self.branch = branch
        self.attempts = attempts
        self.base_delay = base_delay
        self.user_name = user_name
        self.user_email = user_email
        self._sleep = sleep

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        cmd = [
            "git",
            "-c", f"user.name={self.user_name}",
            "-c", f"user.email={self.user_email}",
            *args,
        ]
        logger.debug(f"Running: git {' '.join(args)}")
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_dir,
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            raise GitError(f"git {args[0]} failed: {e}")

        if check and result.returncode != 0:
            raise GitError(
                f"git {args[0]} failed: {result.stderr.strip()}",
                stderr=result.stderr,
            )
        return result

    def _stage(self, path: Path) -> bool:
        """Stage the manifest; return True if there is something to commit."""
        self._git("add", "--", str(path))
        staged = self._git("diff", "--staged", "--quiet", "--", str(path), check=False)
        return staged.returncode != 0

    def publish(
        self,
        path: Path,
        message: str,
        refresh: Optional[Callable[[], bool]] = None,
    ) -> bool:
        """
        Commit the manifest and push it, retrying on rejection.

        Args:
            path: Manifest path (relative to repo_dir or absolute)
            message: Commit message
            refresh: Called after each successful rebase to recompute and
                rewrite the manifest; returns True if it rewrote the file

        Returns:
            True if a commit was pushed, False if there was nothing to commit

        Raises:
            PublishConflictError: If the rebase conflicts
            PublishError: If every push attempt is rejected
            GitError: If any other git command fails
        """
        if not self._stage(path):
            logger.info("No changes to commit")
            return False

        self._git("commit", "-m", message)

        for attempt in range(1, self.attempts + 1):
            pushed = self._git("push", self.remote, f"HEAD:{self.branch}", check=False)
            if pushed.returncode == 0:
                logger.info("Push succeeded")
                return True

            if attempt == self.attempts:
                break

            logger.warning(
                f"Push rejected, rebasing onto {self.remote}/{self.branch} "
                f"(attempt {attempt}/{self.attempts})"
            )
            self._git("fetch", self.remote, self.branch)

            rebased = self._git("rebase", f"{self.remote}/{self.branch}", check=False)
            if rebased.returncode != 0:
                self._git("rebase", "--abort", check=False)
                raise PublishConflictError(
                    "Rebase failed due to conflicts. Manual intervention required."
                )

            if refresh is not None and refresh() and self._stage(path):
                self._git("commit", "--amend", "--no-edit")

            self._sleep(self.base_delay * 2 ** attempt)

        raise PublishError(f"Push failed after {self.attempts} attempts")
