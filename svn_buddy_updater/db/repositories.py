"""DB-specific module that provides specific operations on the database."""

import logging
from typing import (
    Generic,
    TypeVar,
    Any,
    Sequence,
    cast,
)

from sqlalchemy import (
    select,
    delete,
    func,
    inspect,
    CursorResult,
    ColumnElement,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from svn_buddy_updater.constants import ReleaseStability, ArtifactKind
from svn_buddy_updater.db.models import BaseModel, Release

__all__ = (
    "BaseRepository",
    "ReleaseRepository",
)
ModelT = TypeVar("ModelT", bound=BaseModel)
logger = logging.getLogger(__name__)


class BaseRepository(Generic[ModelT]):
    """Base repository interface."""

    model: type[ModelT]

    def __init__(self, session: AsyncSession) -> None:
        self.session: AsyncSession = session

    @property
    def pk_column(self) -> ColumnElement[Any]:
        """Primary key column of the repository's model"""
        return cast(ColumnElement[Any], inspect(self.model).primary_key[0])

    async def first(self, instance_id: str) -> ModelT | None:
        """Selects instance by provided primary key"""
        statement = select(self.model).filter(self.pk_column == instance_id)
        result = await self.session.execute(statement)
        row: Sequence[ModelT] | None = result.fetchone()
        if not row:
            return None

        return row[0]

    async def create(self, value: dict[str, Any]) -> ModelT:
        """Creates new instance"""
        logger.debug("[DB] Creating [%s]: %s", self.model.__name__, value)
        instance = self.model(**value)
        self.session.add(instance)
        return instance

    async def create_many(self, values: Sequence[dict[str, Any]]) -> list[ModelT]:
        """Creates new instances (flushed together with the session)"""
        logger.debug("[DB] Creating %i [%s] instances", len(values), self.model.__name__)
        instances = [self.model(**value) for value in values]
        self.session.add_all(instances)
        return instances

    async def delete_by_ids(self, removing_ids: Sequence[str]) -> int:
        """Remove the instances from the DB."""
        statement = delete(self.model).filter(self.pk_column.in_(removing_ids))
        result = cast(CursorResult[Any], await self.session.execute(statement))
        return result.rowcount


class ReleaseRepository(BaseRepository[Release]):
    """Release's repository."""

    model = Release

    async def delete_by_stability(self, stability: ReleaseStability) -> int:
        """Remove all releases of given stability"""
        logger.debug("[DB] Deleting all '%s' releases", stability)
        statement = delete(self.model).filter(self.model.stability == stability.value)
        result = cast(CursorResult[Any], await self.session.execute(statement))
        logger.info("[DB] Deleted %i '%s' releases", result.rowcount, stability)
        return result.rowcount

    async def delete_by_versions(self, version_names: Sequence[str]) -> int:
        """Remove releases by their version names"""
        if not version_names:
            return 0

        logger.info("[DB] Deleting %i releases: %r", len(version_names), version_names)
        deleted = await self.delete_by_ids(version_names)
        logger.info("[DB] Deleted %i releases", deleted)
        return deleted

    async def get_latest_per_stability(self) -> dict[ReleaseStability, Release]:
        """
        Get the newest release for each stability present in the table.
        Releases with the same release_date are ordered by version name (the greatest wins).
        """
        ranked = select(
            self.model,
            func.row_number()
            .over(
                partition_by=self.model.stability,
                order_by=(self.model.release_date.desc(), self.model.version_name.desc()),
            )
            .label("rank"),
        ).subquery()
        ranked_release = aliased(self.model, ranked)
        statement = select(ranked_release).filter(ranked.c.rank == 1)
        releases = await self.session.scalars(statement)

        latest = {ReleaseStability(release.stability): release for release in releases.all()}
        logger.debug("[DB] Got latest releases: %r", latest)
        return latest

    async def get_snapshot_versions_before(
        self, cutoff: int, excluding_version: str
    ) -> list[str]:
        """
        Get version names of snapshots released before `cutoff` (unix timestamp),
        ordered oldest-first.
        """
        statement = (
            select(self.model.version_name)
            .filter(
                self.model.stability == ReleaseStability.SNAPSHOT.value,
                self.model.release_date < cutoff,
                self.model.version_name != excluding_version,
            )
            .order_by(self.model.release_date.asc(), self.model.version_name.asc())
        )
        versions = await self.session.scalars(statement)
        return list(versions.all())

    async def get_artifact_url(self, version_name: str, kind: ArtifactKind) -> str | None:
        """Get stored URL of the given artifact kind for the version"""
        column = getattr(self.model, kind.column)
        statement = select(column).filter(self.model.version_name == version_name)
        return await self.session.scalar(statement)
