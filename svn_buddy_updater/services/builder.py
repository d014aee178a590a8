import shlex
import logging
import contextlib
from pathlib import Path
from typing import AsyncIterator, Protocol

from svn_buddy_updater.constants import PHAR_FILE_NAME, SIGNATURE_FILE_NAME
from svn_buddy_updater.exceptions import BuildError, CommandError
from svn_buddy_updater.models import BuildArtifacts
from svn_buddy_updater.services.process import run_command
from svn_buddy_updater.services.vcs import SourceControlClient

logger = logging.getLogger(__name__)

__all__ = ("ArtifactBuilder", "PharBuilder")


class ArtifactBuilder(Protocol):
    async def build(self, commit_hash: str, output_dir: Path) -> BuildArtifacts:
        pass


class PharBuilder(ArtifactBuilder):
    """Builds phar (and its signature) for the given commit with project's own build tooling"""

    def __init__(
        self,
        vcs: SourceControlClient,
        build_commands: list[str],
        timeout: float | None = None,
        isolated: bool = True,
    ) -> None:
        self.vcs = vcs
        self.build_commands = build_commands
        self.timeout = timeout
        self.isolated = isolated

    async def build(self, commit_hash: str, output_dir: Path) -> BuildArtifacts:
        output_dir.mkdir(parents=True, exist_ok=True)
        artifacts = BuildArtifacts(
            phar_path=output_dir / PHAR_FILE_NAME,
            signature_path=output_dir / SIGNATURE_FILE_NAME,
        )
        for stale_file in artifacts.files:
            stale_file.unlink(missing_ok=True)

        logger.info("[BUILD] Building %s into %s", commit_hash, output_dir)
        async with self._checkout(commit_hash) as source_dir:
            for command_template in self.build_commands:
                command = shlex.split(command_template.format(build_dir=output_dir))
                try:
                    await run_command(command, cwd=source_dir, timeout=self.timeout)
                except CommandError as exc:
                    raise BuildError(f"Unable to build {commit_hash}: {exc.message}") from exc

        missing_files = [str(path) for path in artifacts.files if not path.is_file()]
        if missing_files:
            raise BuildError(f"Build of {commit_hash} didn't produce: {', '.join(missing_files)}")

        logger.info("[BUILD] Built %s: %s", commit_hash, [str(path) for path in artifacts.files])
        return artifacts

    @contextlib.asynccontextmanager
    async def _checkout(self, commit_hash: str) -> AsyncIterator[Path]:
        if self.isolated:
            async with self.vcs.worktree(commit_hash) as worktree_path:
                yield worktree_path

        else:
            await self.vcs.checkout(commit_hash)
            yield self.vcs.path
