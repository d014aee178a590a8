from typing import Optional
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, ConfigDict

from svn_buddy_updater.constants import ReleaseStability, ArtifactKind

__all__ = (
    "HealthCheck",
    "ErrorResponse",
    "ReleaseData",
    "UpstreamAsset",
    "UpstreamRelease",
    "LatestVersion",
    "CommitLookup",
    "BuildArtifacts",
    "SnapshotSyncResult",
)


class HealthCheck(BaseModel):
    """Health check response model."""

    status: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Base error response model"""

    error: str
    detail: Optional[str] = None


class ReleaseData(BaseModel):
    """Catalog's release row (detached from DB session)"""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    version_name: str
    release_date: int = Field(description="Unix timestamp of publishing (or committing)")
    phar_artifact_url: str = ""
    signature_artifact_url: str = ""
    stability: ReleaseStability

    def artifact_url(self, kind: ArtifactKind) -> str:
        return getattr(self, kind.column)


class UpstreamAsset(BaseModel):
    """Asset attached to the upstream release"""

    name: str
    browser_download_url: str


class UpstreamRelease(BaseModel):
    """Published release from upstream API"""

    name: str
    published_at: datetime
    assets: list[UpstreamAsset] = Field(default_factory=list)


class LatestVersion(BaseModel):
    """Latest version's info for update-check consumers"""

    model_config = ConfigDict(populate_by_name=True)

    path: str
    version: str
    min_php: int = Field(serialization_alias="min-php")


class CommitLookup(BaseModel):
    """Result of looking for a snapshot-eligible commit"""

    model_config = ConfigDict(frozen=True)

    commit_hash: str | None = None
    committed_at: int | None = None

    @property
    def found(self) -> bool:
        return self.commit_hash is not None

    @classmethod
    def not_found(cls) -> "CommitLookup":
        return cls()


class BuildArtifacts(BaseModel):
    """Local files produced by the build"""

    model_config = ConfigDict(frozen=True)

    phar_path: Path
    signature_path: Path

    @property
    def files(self) -> list[Path]:
        return [self.phar_path, self.signature_path]


class SnapshotSyncResult(BaseModel):
    """Summary of a single snapshot synchronization pass"""

    commit_hash: str
    built: bool
    swept_versions: list[str] = Field(default_factory=list)
