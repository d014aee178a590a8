import logging
import contextlib
from datetime import datetime
from typing import AsyncIterator, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from svn_buddy_updater.constants import ReleaseStability, ArtifactKind
from svn_buddy_updater.db.repositories import ReleaseRepository
from svn_buddy_updater.db.services import SASessionUOW
from svn_buddy_updater.exceptions import DatabaseError, DuplicateVersionError
from svn_buddy_updater.models import ReleaseData

logger = logging.getLogger(__name__)

__all__ = ("ReleaseCatalog",)


class ReleaseCatalog:
    """
    Typed access to the releases table.
    Each operation runs in its own short-lived transaction;
    driver-level failures are raised as DatabaseError (DuplicateVersionError for
    unique violations).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    @contextlib.asynccontextmanager
    async def _uow(self) -> AsyncIterator[SASessionUOW]:
        try:
            async with SASessionUOW(session_factory=self._session_factory) as uow:
                yield uow

        except IntegrityError as exc:
            logger.error("[CATALOG] Integrity error: %r", exc)
            raise DuplicateVersionError(f"Release version already exists: {exc.orig}") from exc

        except SQLAlchemyError as exc:
            logger.error("[CATALOG] Database error: %r", exc)
            raise DatabaseError(f"Catalog operation failed: {exc}") from exc

    async def replace_stable_releases(self, releases: Sequence[ReleaseData]) -> None:
        """Replaces all stable releases with given ones (atomically)"""
        if any(release.stability != ReleaseStability.STABLE for release in releases):
            raise ValueError("Only stable releases can replace the stable channel")

        async with self._uow() as uow:
            repo = ReleaseRepository(session=uow.session)
            await repo.delete_by_stability(ReleaseStability.STABLE)
            await repo.create_many([release.model_dump(mode="json") for release in releases])
            uow.mark_for_commit()

        logger.info("[CATALOG] Stable releases replaced: %i releases", len(releases))

    async def find_snapshot_by_version(self, version_name: str) -> ReleaseData | None:
        """Finds already recorded release with given version name"""
        async with self._uow() as uow:
            repo = ReleaseRepository(session=uow.session)
            release = await repo.first(version_name)
            return ReleaseData.model_validate(release) if release else None

    async def insert_snapshot(self, release: ReleaseData) -> None:
        """
        Stores new snapshot release

        :raises DuplicateVersionError: release with the same version name already exists
        :raises DatabaseError: catalog is unreachable or rejected the row
        """
        if release.stability != ReleaseStability.SNAPSHOT:
            raise ValueError(f"Release {release.version_name} is not a snapshot")

        async with self._uow() as uow:
            repo = ReleaseRepository(session=uow.session)
            if await repo.first(release.version_name) is not None:
                raise DuplicateVersionError(f"Version {release.version_name} already exists")

            await repo.create(release.model_dump(mode="json"))
            uow.mark_for_commit()

        logger.info("[CATALOG] Snapshot %s stored", release.version_name)

    async def latest_per_stability(self) -> dict[ReleaseStability, ReleaseData]:
        """
        Newest release for each stability present in the catalog
        (on equal release dates the greatest version name wins)
        """
        async with self._uow() as uow:
            repo = ReleaseRepository(session=uow.session)
            latest = await repo.get_latest_per_stability()
            return {
                stability: ReleaseData.model_validate(release)
                for stability, release in latest.items()
            }

    async def snapshots_older_than(self, cutoff: datetime, excluding_version: str) -> list[str]:
        """Version names of snapshots released before cutoff (oldest first)"""
        async with self._uow() as uow:
            repo = ReleaseRepository(session=uow.session)
            return await repo.get_snapshot_versions_before(
                cutoff=int(cutoff.timestamp()),
                excluding_version=excluding_version,
            )

    async def delete_versions(self, version_names: Sequence[str]) -> int:
        async with self._uow() as uow:
            repo = ReleaseRepository(session=uow.session)
            deleted = await repo.delete_by_versions(version_names)
            uow.mark_for_commit()

        return deleted

    async def download_url(self, version_name: str, file_name: str) -> str:
        """Stored URL for version's file ("" for unknown file names and versions)"""
        kind = ArtifactKind.from_file_name(file_name)
        if kind is None:
            logger.debug("[CATALOG] Unknown artifact file requested: %s", file_name)
            return ""

        async with self._uow() as uow:
            repo = ReleaseRepository(session=uow.session)
            url = await repo.get_artifact_url(version_name, kind)

        return url or ""
