"""
Release synchronization: stable releases from upstream, weekly snapshots
built from the repository and retention of expired snapshots.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from svn_buddy_updater.constants import (
    ArtifactKind,
    ReleaseStability,
    SNAPSHOTS_PREFIX,
    DOWNLOAD_PATH_TEMPLATE,
    CACHE_KEY_LATEST_VERSIONS,
)
from svn_buddy_updater.exceptions import CacheBackendError, NoEligibleCommitError, StorageError
from svn_buddy_updater.models import (
    ReleaseData,
    UpstreamRelease,
    LatestVersion,
    SnapshotSyncResult,
)
from svn_buddy_updater.services.builder import ArtifactBuilder, PharBuilder
from svn_buddy_updater.services.cache import CacheProtocol
from svn_buddy_updater.services.catalog import ReleaseCatalog
from svn_buddy_updater.services.storage import ArtifactStore, S3ArtifactStore
from svn_buddy_updater.services.upstream import UpstreamReleaseSource, GitHubReleaseSource
from svn_buddy_updater.services.vcs import SourceControlClient, GitRepository
from svn_buddy_updater.settings import AppSettings, ReleaseSyncSettings

logger = logging.getLogger(__name__)

__all__ = (
    "ReleaseSyncOrchestrator",
    "make_orchestrator",
    "snapshot_prefix",
    "snapshot_object_keys",
)


def local_now() -> datetime:
    """Local wall clock (naive: UTC offsets are resolved per moment where needed)"""
    return datetime.now()


def snapshot_prefix(version_name: str) -> str:
    """
    Object-store "folder" of the snapshot

    >>> snapshot_prefix("abc")
    'snapshots/abc'

    """
    return f"{SNAPSHOTS_PREFIX}/{version_name}"


def snapshot_object_keys(version_name: str) -> list[str]:
    """All object-store keys which belong to the snapshot (including the folder itself)"""
    prefix = snapshot_prefix(version_name)
    return [f"{prefix}/{kind.file_name}" for kind in ArtifactKind] + [prefix]


class ReleaseSyncOrchestrator:
    """
    Reconciles upstream releases, the repository and the artifacts' bucket
    with the releases catalog.

    Each entry point is a single stateless pass: any failure aborts the pass and
    is raised to the caller; the next invocation starts from the catalog's state.
    """

    def __init__(
        self,
        settings: ReleaseSyncSettings,
        catalog: ReleaseCatalog,
        upstream: UpstreamReleaseSource,
        vcs: SourceControlClient,
        builder: ArtifactBuilder,
        storage: ArtifactStore,
        cache: CacheProtocol | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.upstream = upstream
        self.vcs = vcs
        self.builder = builder
        self.storage = storage
        self.cache = cache
        self.clock = clock
        self._stable_lock = asyncio.Lock()
        self._snapshot_lock = asyncio.Lock()

    async def sync_stable(self) -> list[ReleaseData]:
        """Replaces stable releases in the catalog with currently published upstream ones"""
        owner, repo = self.settings.upstream_owner, self.settings.upstream_repo
        async with self._stable_lock, asyncio.timeout(self.settings.sync_timeout):
            logger.info("[SYNC] Stable: syncing releases from %s/%s", owner, repo)
            upstream_releases = await self.upstream.fetch_releases(owner, repo)
            releases = self._map_upstream_releases(upstream_releases)
            await self.catalog.replace_stable_releases(releases)

        await self._invalidate_cache()
        logger.info("[SYNC] Stable: %i releases stored", len(releases))
        return releases

    async def sync_snapshot(self) -> SnapshotSyncResult:
        """
        Records snapshot for the last commit before this week's Monday
        (builds and uploads it once) and removes expired snapshots.
        """
        async with self._snapshot_lock, asyncio.timeout(self.settings.sync_timeout):
            await self.vcs.checkout(self.settings.branch)
            await self.vcs.pull()

            lookup = await self.vcs.find_commit_before_weekly_cutoff(self.clock())
            if not lookup.found or lookup.commit_hash is None or lookup.committed_at is None:
                raise NoEligibleCommitError(
                    f"Unable to detect commit for the snapshot on '{self.settings.branch}'"
                )

            commit_hash = lookup.commit_hash
            built = False
            if await self.catalog.find_snapshot_by_version(commit_hash) is not None:
                logger.info("[SYNC] Snapshot: %s is already recorded, skipping build", commit_hash)
            else:
                await self._create_snapshot(commit_hash, lookup.committed_at)
                built = True

            swept_versions = await self.sweep_expired_snapshots()

        return SnapshotSyncResult(
            commit_hash=commit_hash,
            built=built,
            swept_versions=swept_versions,
        )

    async def sweep_expired_snapshots(self, now: datetime | None = None) -> list[str]:
        """
        Deletes snapshots older than the retention window (the newest snapshot is kept
        regardless of its age). Objects are deleted from the bucket before catalog rows.

        :return: version names removed from the catalog
        :raises StorageError: objects of some versions weren't deleted (their rows are kept)
        """
        latest = (await self.catalog.latest_per_stability()).get(ReleaseStability.SNAPSHOT)
        if latest is None:
            logger.info("[SYNC] Retention: no snapshots recorded yet")
            return []

        cutoff = (now or self.clock()) - self.settings.snapshot_lifetime
        expired = await self.catalog.snapshots_older_than(
            cutoff, excluding_version=latest.version_name
        )
        if not expired:
            logger.info("[SYNC] Retention: nothing expired before %s", cutoff)
            return []

        logger.info("[SYNC] Retention: %i snapshots expired: %r", len(expired), expired)
        removed: list[str] = []
        failed: dict[str, str] = {}
        for version_name in expired:
            try:
                await self.storage.delete_by_keys(snapshot_object_keys(version_name))
            except StorageError as exc:
                logger.error("[SYNC] Retention: unable to delete %s: %s", version_name, exc)
                failed[version_name] = exc.message
            else:
                removed.append(version_name)

        if removed:
            await self.catalog.delete_versions(removed)
            await self._invalidate_cache()
            logger.info("[SYNC] Retention: removed %i snapshots", len(removed))

        if failed:
            raise StorageError(
                f"Unable to delete artifacts of {len(failed)} expired snapshot(s): {failed}"
            )

        return removed

    async def latest_versions_for_stability(self) -> dict[ReleaseStability, LatestVersion]:
        """Latest version (with its download path) per stability"""
        latest = await self.catalog.latest_per_stability()
        return {
            stability: LatestVersion(
                path=DOWNLOAD_PATH_TEMPLATE.format(version=release.version_name),
                version=release.version_name,
                min_php=self.settings.min_php_version,
            )
            for stability, release in latest.items()
        }

    async def download_url(self, version_name: str, file_name: str) -> str:
        return await self.catalog.download_url(version_name, file_name)

    async def _create_snapshot(self, commit_hash: str, committed_at: int) -> ReleaseData:
        logger.info("[SYNC] Snapshot: creating release for %s", commit_hash)
        artifacts = await self.builder.build(commit_hash, self.settings.snapshots_path)
        urls = await self.storage.upload(artifacts.files, snapshot_prefix(commit_hash))

        artifact_urls: dict[str, str] = {}
        for file_path, url in zip(artifacts.files, urls, strict=True):
            if kind := ArtifactKind.from_file_name(file_path.name):
                artifact_urls[kind.column] = url

        release = ReleaseData(
            version_name=commit_hash,
            release_date=committed_at,
            stability=ReleaseStability.SNAPSHOT,
            **artifact_urls,
        )
        await self.catalog.insert_snapshot(release)
        await self._invalidate_cache()
        return release

    @staticmethod
    def _map_upstream_releases(upstream_releases: Sequence[UpstreamRelease]) -> list[ReleaseData]:
        releases: dict[str, ReleaseData] = {}
        for upstream_release in upstream_releases:
            if upstream_release.name in releases:
                logger.warning(
                    "[SYNC] Stable: duplicated release name %r, keeping the first one",
                    upstream_release.name,
                )
                continue

            artifact_urls: dict[str, str] = {}
            for asset in upstream_release.assets:
                if kind := ArtifactKind.from_file_name(asset.name):
                    artifact_urls[kind.column] = asset.browser_download_url

            releases[upstream_release.name] = ReleaseData(
                version_name=upstream_release.name,
                release_date=int(upstream_release.published_at.timestamp()),
                stability=ReleaseStability.STABLE,
                **artifact_urls,
            )

        return list(releases.values())

    async def _invalidate_cache(self) -> None:
        """Catalog changes are already committed here: cache failures don't fail the pass"""
        if self.cache is None:
            return

        try:
            await self.cache.invalidate(key=CACHE_KEY_LATEST_VERSIONS)
        except CacheBackendError as exc:
            logger.error("[SYNC] Unable to invalidate latest versions cache: %s", exc.message)


def make_orchestrator(
    settings: AppSettings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    cache: CacheProtocol | None = None,
) -> ReleaseSyncOrchestrator:
    """Wires orchestrator with default collaborators (GitHub, git, S3, DB)"""
    sync_settings = settings.sync
    vcs = GitRepository(sync_settings.repository_path, timeout=sync_settings.command_timeout)
    return ReleaseSyncOrchestrator(
        settings=sync_settings,
        catalog=ReleaseCatalog(session_factory=session_factory),
        upstream=GitHubReleaseSource(settings.github),
        vcs=vcs,
        builder=PharBuilder(
            vcs=vcs,
            build_commands=sync_settings.build_commands,
            timeout=sync_settings.build_timeout,
            isolated=sync_settings.isolated_builds,
        ),
        storage=S3ArtifactStore(settings.storage),
        cache=cache,
    )
