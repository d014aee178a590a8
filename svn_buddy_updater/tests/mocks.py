import contextlib
import fnmatch
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Sequence

from svn_buddy_updater.constants import ReleaseStability, ArtifactKind
from svn_buddy_updater.exceptions import DuplicateVersionError, StorageError
from svn_buddy_updater.models import (
    ReleaseData,
    UpstreamRelease,
    CommitLookup,
    BuildArtifacts,
)

__all__ = (
    "NOW",
    "BUCKET_URL",
    "MockReleaseCatalog",
    "MockUpstreamSource",
    "MockSourceControl",
    "MockBuilder",
    "MockArtifactStore",
    "MockRedisClient",
    "make_release",
)
BUCKET_URL = "https://artifacts.example.com"
# Wednesday: the weekly cutoff is Monday, 2024-03-11 00:00 UTC
NOW = datetime(2024, 3, 13, 12, 0, tzinfo=timezone.utc)


class MockReleaseCatalog:
    """In-memory catalog with the same semantics as ReleaseCatalog"""

    def __init__(self, releases: Sequence[ReleaseData] = ()) -> None:
        self.releases: dict[str, ReleaseData] = {
            release.version_name: release for release in releases
        }
        self.replace_calls: int = 0
        self.deleted_batches: list[list[str]] = []

    async def replace_stable_releases(self, releases: Sequence[ReleaseData]) -> None:
        self.replace_calls += 1
        self.releases = {
            version_name: release
            for version_name, release in self.releases.items()
            if release.stability != ReleaseStability.STABLE
        }
        for release in releases:
            self.releases[release.version_name] = release

    async def find_snapshot_by_version(self, version_name: str) -> ReleaseData | None:
        return self.releases.get(version_name)

    async def insert_snapshot(self, release: ReleaseData) -> None:
        if release.version_name in self.releases:
            raise DuplicateVersionError(f"Version {release.version_name} already exists")

        self.releases[release.version_name] = release

    async def latest_per_stability(self) -> dict[ReleaseStability, ReleaseData]:
        latest: dict[ReleaseStability, ReleaseData] = {}
        for release in self.releases.values():
            current = latest.get(release.stability)
            key = (release.release_date, release.version_name)
            if current is None or key > (current.release_date, current.version_name):
                latest[release.stability] = release

        return latest

    async def snapshots_older_than(self, cutoff: datetime, excluding_version: str) -> list[str]:
        snapshots = sorted(
            (
                release
                for release in self.releases.values()
                if release.stability == ReleaseStability.SNAPSHOT
                and release.release_date < int(cutoff.timestamp())
                and release.version_name != excluding_version
            ),
            key=lambda release: (release.release_date, release.version_name),
        )
        return [release.version_name for release in snapshots]

    async def delete_versions(self, version_names: Sequence[str]) -> int:
        self.deleted_batches.append(list(version_names))
        deleted = 0
        for version_name in version_names:
            if self.releases.pop(version_name, None) is not None:
                deleted += 1

        return deleted

    async def download_url(self, version_name: str, file_name: str) -> str:
        kind = ArtifactKind.from_file_name(file_name)
        release = self.releases.get(version_name)
        if kind is None or release is None:
            return ""

        return release.artifact_url(kind)


class MockUpstreamSource:
    def __init__(
        self,
        releases: Sequence[UpstreamRelease] = (),
        error: Exception | None = None,
    ) -> None:
        self.releases = list(releases)
        self.error = error
        self.requested: list[tuple[str, str]] = []

    async def fetch_releases(self, owner: str, repo: str) -> list[UpstreamRelease]:
        self.requested.append((owner, repo))
        if self.error is not None:
            raise self.error

        return list(self.releases)


class MockSourceControl:
    def __init__(self, path: Path, lookup: CommitLookup | None = None) -> None:
        self.path = path
        self.lookup = lookup or CommitLookup.not_found()
        self.calls: list[tuple[str, ...]] = []

    async def checkout(self, ref: str) -> None:
        self.calls.append(("checkout", ref))

    async def pull(self) -> None:
        self.calls.append(("pull",))

    async def find_commit_before_weekly_cutoff(self, now: datetime | None = None) -> CommitLookup:
        self.calls.append(("log",))
        return self.lookup

    @contextlib.asynccontextmanager
    async def worktree(self, ref: str) -> AsyncIterator[Path]:
        self.calls.append(("worktree", ref))
        yield self.path


class MockBuilder:
    """Writes fake artifacts instead of running real build tooling"""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.built: list[str] = []

    async def build(self, commit_hash: str, output_dir: Path) -> BuildArtifacts:
        if self.error is not None:
            raise self.error

        self.built.append(commit_hash)
        output_dir.mkdir(parents=True, exist_ok=True)
        artifacts = BuildArtifacts(
            phar_path=output_dir / ArtifactKind.BINARY.file_name,
            signature_path=output_dir / ArtifactKind.SIGNATURE.file_name,
        )
        for path in artifacts.files:
            path.write_text(f"{commit_hash}:{path.name}")

        return artifacts


class MockArtifactStore:
    """Object store keeping keys in memory; deletes of `failing_keys` are rejected"""

    def __init__(self, keys: Sequence[str] = (), failing_keys: Sequence[str] = ()) -> None:
        self.keys: set[str] = set(keys)
        self.failing_keys = set(failing_keys)
        self.uploaded: list[str] = []
        self.delete_requests: list[list[str]] = []

    async def upload(self, files: Sequence[Path], destination_prefix: str) -> list[str]:
        urls = []
        for file_path in files:
            key = f"{destination_prefix}/{file_path.name}"
            self.keys.add(key)
            self.uploaded.append(key)
            urls.append(f"{BUCKET_URL}/{key}")

        return urls

    async def delete_by_keys(self, keys: Sequence[str]) -> None:
        self.delete_requests.append(list(keys))
        if failed := self.failing_keys.intersection(keys):
            raise StorageError(f"Unable to delete objects: {sorted(failed)}")

        self.keys.difference_update(keys)


class MockRedisClient:
    """Dict-backed redis client (stands for the backend shared by API and CLI processes)"""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self.data[key] = value.encode()
        self.ttls[key] = ttl

    async def delete(self, *keys: str) -> int:
        return sum(self.data.pop(key, None) is not None for key in keys)

    async def keys(self, pattern: str) -> list[str]:
        return [key for key in self.data if fnmatch.fnmatch(key, pattern)]

    async def flushdb(self) -> None:
        self.data.clear()


def make_release(
    version_name: str,
    release_date: int,
    stability: ReleaseStability = ReleaseStability.SNAPSHOT,
    with_urls: bool = True,
) -> ReleaseData:
    urls: dict[str, str] = {}
    if with_urls:
        folder = version_name
        if stability == ReleaseStability.SNAPSHOT:
            folder = f"snapshots/{version_name}"

        urls = {
            kind.column: f"{BUCKET_URL}/{folder}/{kind.file_name}" for kind in ArtifactKind
        }

    return ReleaseData(
        version_name=version_name,
        release_date=release_date,
        stability=stability,
        **urls,
    )
