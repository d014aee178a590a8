import asyncio
import logging
import tempfile
import contextlib
from datetime import datetime, timedelta
from pathlib import Path
from typing import AsyncIterator, Protocol

from svn_buddy_updater.exceptions import CommandError, SourceControlError
from svn_buddy_updater.models import CommitLookup
from svn_buddy_updater.services.process import run_command
from svn_buddy_updater.utils import week_start

logger = logging.getLogger(__name__)

__all__ = ("SourceControlClient", "GitRepository")
LOG_FORMAT = "%H:%ct"


class SourceControlClient(Protocol):
    path: Path

    async def checkout(self, ref: str) -> None:
        pass

    async def pull(self) -> None:
        pass

    async def find_commit_before_weekly_cutoff(
        self, now: datetime | None = None
    ) -> CommitLookup:
        pass

    def worktree(self, ref: str) -> contextlib.AbstractAsyncContextManager[Path]:
        pass


class GitRepository(SourceControlClient):
    """
    Git working copy of the tracked repository.

    All commands touching the working copy are serialized with a lock
    (the working copy is a single shared resource).
    """

    def __init__(self, path: Path, timeout: float | None = None) -> None:
        self.path = path
        self.timeout = timeout
        self._lock = asyncio.Lock()

    async def checkout(self, ref: str) -> None:
        logger.info("[GIT] Checking out '%s' in %s", ref, self.path)
        await self._git("checkout", ref)

    async def pull(self) -> None:
        logger.info("[GIT] Pulling changes in %s", self.path)
        await self._git("pull")

    async def find_commit_before_weekly_cutoff(
        self, now: datetime | None = None
    ) -> CommitLookup:
        """
        Finds the latest commit (on the checked-out branch) made strictly before
        Monday 00:00 of the current week.
        """
        cutoff = week_start(now)
        if cutoff.tzinfo is None:
            # naive time is local: Monday's own UTC offset (DST)
            cutoff = cutoff.astimezone()

        # git treats --before as inclusive (commit timestamps have 1s resolution)
        before = cutoff - timedelta(seconds=1)
        output = await self._git(
            "log",
            f"--format={LOG_FORMAT}",
            "--max-count=1",
            f"--before={before.isoformat()}",
        )
        lookup = self.parse_log_output(output)
        if lookup.found:
            logger.info(
                "[GIT] Found commit %s (committed at %s) before %s",
                lookup.commit_hash,
                lookup.committed_at,
                cutoff,
            )
        else:
            logger.warning("[GIT] No commits found before %s", cutoff)

        return lookup

    @staticmethod
    def parse_log_output(output: str) -> CommitLookup:
        """
        Parses `git log --format=%H:%ct` output (the first line only)

        >>> GitRepository.parse_log_output("")
        CommitLookup(commit_hash=None, committed_at=None)

        """
        line = output.strip().splitlines()[0] if output.strip() else ""
        commit_hash, separator, committed_at = line.partition(":")
        if not separator or not commit_hash:
            return CommitLookup.not_found()

        try:
            timestamp = int(committed_at)
        except ValueError as exc:
            raise SourceControlError(f"Unexpected git log output: {line!r}") from exc

        return CommitLookup(commit_hash=commit_hash, committed_at=timestamp)

    @contextlib.asynccontextmanager
    async def worktree(self, ref: str) -> AsyncIterator[Path]:
        """
        Provides a disposable detached checkout of `ref`
        (removed on every exit path, the shared working copy stays untouched)
        """
        with tempfile.TemporaryDirectory(prefix="svn-buddy-build-") as tmp_dir:
            worktree_path = Path(tmp_dir) / "repository"
            logger.info("[GIT] Creating worktree for %s in %s", ref, worktree_path)
            await self._git("worktree", "add", "--detach", str(worktree_path), ref)
            try:
                yield worktree_path
            finally:
                await self._remove_worktree(worktree_path)

    async def _remove_worktree(self, worktree_path: Path) -> None:
        """Cleanup failures are logged only: they mustn't replace the error of the build"""
        logger.info("[GIT] Removing worktree %s", worktree_path)
        try:
            await self._git("worktree", "remove", "--force", str(worktree_path))
        except SourceControlError as exc:
            logger.error("[GIT] Unable to remove worktree %s: %s", worktree_path, exc.message)
            # the temporary directory is dropped anyway: forget its administrative files
            try:
                await self._git("worktree", "prune")
            except SourceControlError as prune_exc:
                logger.error("[GIT] Unable to prune worktrees: %s", prune_exc.message)

    async def _git(self, command: str, *arguments: str) -> str:
        async with self._lock:
            try:
                return await run_command(
                    ["git", command, *arguments],
                    cwd=self.path,
                    timeout=self.timeout,
                )
            except CommandError as exc:
                raise SourceControlError(f"git {command} failed: {exc.message}") from exc
