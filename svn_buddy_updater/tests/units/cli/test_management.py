import json
from datetime import datetime, timezone
from typing import Any, Callable, Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner, Result

from svn_buddy_updater.constants import ReleaseStability
from svn_buddy_updater.exceptions import DatabaseError, UpstreamFetchError
from svn_buddy_updater.models import CommitLookup, UpstreamAsset, UpstreamRelease
from svn_buddy_updater.modules.cli.management import cli
from svn_buddy_updater.services.orchestrator import ReleaseSyncOrchestrator
from svn_buddy_updater.settings import get_app_settings
from svn_buddy_updater.tests.mocks import (
    MockArtifactStore,
    MockReleaseCatalog,
    MockSourceControl,
    MockUpstreamSource,
    make_release,
)

COMMIT = "3f2a9c1e5b7d"


@pytest.fixture(autouse=True)
def mock_db_operations() -> Generator[tuple[AsyncMock, AsyncMock], Any, None]:
    with (
        patch(
            "svn_buddy_updater.modules.cli.management.initialize_database", new_callable=AsyncMock
        ) as mock_init,
        patch(
            "svn_buddy_updater.modules.cli.management.close_database", new_callable=AsyncMock
        ) as mock_close,
    ):
        yield mock_init, mock_close


@pytest.fixture(autouse=True)
def mock_logging_config() -> Generator[MagicMock, Any, None]:
    with patch("logging.config.dictConfig") as mock_config:
        yield mock_config


@pytest.fixture(autouse=True)
def mock_make_orchestrator(
    orchestrator: ReleaseSyncOrchestrator,
) -> Generator[MagicMock, Any, None]:
    with patch(
        "svn_buddy_updater.modules.cli.management.make_orchestrator", return_value=orchestrator
    ) as mock_make:
        yield mock_make


class CliRunnerTypeHinted(CliRunner):

    def invoke(self, cli: Callable[..., Any], *args: Any, **kwargs: Any) -> Result:
        result = super().invoke(cli, *args, **kwargs)  # type: ignore
        return result


@pytest.fixture
def cli_runner() -> CliRunnerTypeHinted:
    return CliRunnerTypeHinted()


class TestSyncStable:

    def test_sync_stable(
        self,
        cli_runner: CliRunnerTypeHinted,
        mock_upstream: MockUpstreamSource,
        mock_catalog: MockReleaseCatalog,
        mock_db_operations: tuple[AsyncMock, AsyncMock],
    ) -> None:
        mock_upstream.releases = [
            UpstreamRelease(
                name="v1.2.0",
                published_at=datetime(2024, 1, 10, tzinfo=timezone.utc),
                assets=[
                    UpstreamAsset(
                        name="svn-buddy.phar",
                        browser_download_url="https://github.com/d/v1.2.0/svn-buddy.phar",
                    )
                ],
            )
        ]

        result = cli_runner.invoke(cli, ["sync-stable"])

        assert result.exit_code == 0, result.output
        assert "Stored 1 stable releases." in result.output
        assert " - v1.2.0" in result.output
        assert list(mock_catalog.releases) == ["v1.2.0"]
        mock_init, mock_close = mock_db_operations
        mock_init.assert_awaited_once()
        mock_close.assert_awaited_once()

    def test_upstream_failure(
        self,
        cli_runner: CliRunnerTypeHinted,
        mock_upstream: MockUpstreamSource,
        mock_catalog: MockReleaseCatalog,
        mock_db_operations: tuple[AsyncMock, AsyncMock],
    ) -> None:
        mock_upstream.error = UpstreamFetchError("GitHub responded with 503")

        result = cli_runner.invoke(cli, ["sync-stable"])

        assert result.exit_code == 1
        assert "Unable to fetch upstream releases: GitHub responded with 503" in result.output
        assert mock_catalog.replace_calls == 0
        _, mock_close = mock_db_operations
        mock_close.assert_awaited_once()


class TestSyncSnapshot:

    def test_snapshot_built(
        self,
        cli_runner: CliRunnerTypeHinted,
        mock_vcs: MockSourceControl,
        mock_store: MockArtifactStore,
    ) -> None:
        mock_vcs.lookup = CommitLookup(commit_hash=COMMIT, committed_at=1710000000)

        result = cli_runner.invoke(cli, ["sync-snapshot"])

        assert result.exit_code == 0, result.output
        assert f"Snapshot {COMMIT} built and stored." in result.output
        assert "Expired snapshots removed: 0" in result.output
        assert mock_store.uploaded == [
            f"snapshots/{COMMIT}/svn-buddy.phar",
            f"snapshots/{COMMIT}/svn-buddy.phar.sig",
        ]

    def test_snapshot_already_stored(
        self,
        cli_runner: CliRunnerTypeHinted,
        mock_vcs: MockSourceControl,
        mock_catalog: MockReleaseCatalog,
        mock_store: MockArtifactStore,
    ) -> None:
        mock_vcs.lookup = CommitLookup(commit_hash=COMMIT, committed_at=1710000000)
        mock_catalog.releases[COMMIT] = make_release(COMMIT, 1710000000)

        result = cli_runner.invoke(cli, ["sync-snapshot"])

        assert result.exit_code == 0, result.output
        assert f"Snapshot {COMMIT} is already stored." in result.output
        assert mock_store.uploaded == []

    def test_no_eligible_commit(self, cli_runner: CliRunnerTypeHinted) -> None:
        result = cli_runner.invoke(cli, ["sync-snapshot"])

        assert result.exit_code == 1
        assert "No snapshot-eligible commit" in result.output


class TestSweepSnapshots:

    def test_sweep(
        self,
        cli_runner: CliRunnerTypeHinted,
        mock_catalog: MockReleaseCatalog,
    ) -> None:
        # NOW is 2024-03-13, retention window is 21 days
        for release in (
            make_release("old", 1706745600),
            make_release("recent", 1709942400),
        ):
            mock_catalog.releases[release.version_name] = release

        result = cli_runner.invoke(cli, ["sweep-snapshots"])

        assert result.exit_code == 0, result.output
        assert "Expired snapshots removed: 1" in result.output
        assert " - old" in result.output
        assert list(mock_catalog.releases) == ["recent"]

    def test_sweep_storage_failure(
        self,
        cli_runner: CliRunnerTypeHinted,
        mock_catalog: MockReleaseCatalog,
        mock_store: MockArtifactStore,
    ) -> None:
        mock_store.failing_keys = {"snapshots/old/svn-buddy.phar"}
        for release in (
            make_release("old", 1706745600),
            make_release("recent", 1709942400),
        ):
            mock_catalog.releases[release.version_name] = release

        result = cli_runner.invoke(cli, ["sweep-snapshots"])

        assert result.exit_code == 1
        assert "Artifact storage error" in result.output
        assert "old" in mock_catalog.releases


class TestLatestVersions:

    def test_latest_versions(
        self,
        cli_runner: CliRunnerTypeHinted,
        mock_catalog: MockReleaseCatalog,
    ) -> None:
        mock_catalog.releases["v1.2.0"] = make_release(
            "v1.2.0", 1704844800, ReleaseStability.STABLE
        )

        result = cli_runner.invoke(cli, ["latest-versions"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "stable": {
                "path": "/download/v1.2.0/svn-buddy.phar",
                "version": "v1.2.0",
                "min-php": 50300,
            }
        }


class TestErrorHandling:

    def test_db_connection_error(
        self,
        cli_runner: CliRunnerTypeHinted,
        mock_db_operations: tuple[AsyncMock, AsyncMock],
    ) -> None:
        mock_init, _ = mock_db_operations
        mock_init.side_effect = DatabaseError("Failed to ping database")

        result = cli_runner.invoke(cli, ["latest-versions"])

        assert result.exit_code == 1
        assert "Failed to ping database" in result.output

    @patch.dict("os.environ", {"APP_PORT": "not-a-port"})
    def test_invalid_settings(self, cli_runner: CliRunnerTypeHinted) -> None:
        get_app_settings.cache_clear()
        result = cli_runner.invoke(cli, ["latest-versions"])

        assert result.exit_code == 1
        assert "Unable to get settings from environment" in result.output

    def test_help(self, cli_runner: CliRunnerTypeHinted) -> None:
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("sync-stable", "sync-snapshot", "sweep-snapshots", "latest-versions"):
            assert command in result.output
