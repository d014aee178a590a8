import os
from pathlib import Path
from typing import Any, Generator
from unittest.mock import MagicMock, patch, AsyncMock

import pytest
from starlette.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from svn_buddy_updater.main import make_app, SvnBuddyUpdaterAPP
from svn_buddy_updater.modules.api.dependencies import get_orchestrator
from svn_buddy_updater.services.cache import InMemoryCache
from svn_buddy_updater.services.orchestrator import ReleaseSyncOrchestrator
from svn_buddy_updater.settings import AppSettings, ReleaseSyncSettings, get_app_settings
from svn_buddy_updater.settings.app import FlagsSettings

from svn_buddy_updater.tests.mocks import (
    NOW,
    MockReleaseCatalog,
    MockUpstreamSource,
    MockSourceControl,
    MockBuilder,
    MockArtifactStore,
)

MINIMAL_ENV_VARS = {
    "FLAG_USE_REDIS": "false",
    "FLAG_API_DOCS_ENABLED": "true",
}


@pytest.fixture(autouse=True)
def minimal_env_vars() -> Generator[None, Any, None]:
    with patch.dict(os.environ, MINIMAL_ENV_VARS):
        get_app_settings.cache_clear()
        yield

    get_app_settings.cache_clear()


@pytest.fixture(autouse=True)
def clear_memory_cache() -> Generator[None, Any, None]:
    cache = InMemoryCache()
    cache._data.clear()
    cache._expires_at.clear()
    yield
    cache._data.clear()
    cache._expires_at.clear()


@pytest.fixture
def sync_settings(tmp_path: Path) -> ReleaseSyncSettings:
    return ReleaseSyncSettings(
        repository_path=tmp_path / "repository",
        snapshots_path=tmp_path / "snapshots",
    )


@pytest.fixture
def app_settings_test(sync_settings: ReleaseSyncSettings) -> AppSettings:
    return AppSettings(
        flags=FlagsSettings(use_redis=False, api_docs_enabled=True),
        sync=sync_settings,
    )


@pytest.fixture
def mock_catalog() -> MockReleaseCatalog:
    return MockReleaseCatalog()


@pytest.fixture
def mock_upstream() -> MockUpstreamSource:
    return MockUpstreamSource()


@pytest.fixture
def mock_vcs(sync_settings: ReleaseSyncSettings) -> MockSourceControl:
    return MockSourceControl(path=sync_settings.repository_path)


@pytest.fixture
def mock_builder() -> MockBuilder:
    return MockBuilder()


@pytest.fixture
def mock_store() -> MockArtifactStore:
    return MockArtifactStore()


@pytest.fixture
def orchestrator(
    sync_settings: ReleaseSyncSettings,
    mock_catalog: MockReleaseCatalog,
    mock_upstream: MockUpstreamSource,
    mock_vcs: MockSourceControl,
    mock_builder: MockBuilder,
    mock_store: MockArtifactStore,
) -> ReleaseSyncOrchestrator:
    return ReleaseSyncOrchestrator(
        settings=sync_settings,
        catalog=mock_catalog,  # type: ignore[arg-type]
        upstream=mock_upstream,
        vcs=mock_vcs,
        builder=mock_builder,
        storage=mock_store,
        cache=InMemoryCache(),
        clock=lambda: NOW,
    )


@pytest.fixture
def test_app(
    app_settings_test: AppSettings,
    orchestrator: ReleaseSyncOrchestrator,
) -> Generator[SvnBuddyUpdaterAPP, Any, None]:
    test_app = make_app(settings=app_settings_test)
    test_app.dependency_overrides[get_app_settings] = lambda: test_app.settings
    test_app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield test_app
    test_app.dependency_overrides.clear()


@pytest.fixture
def client(test_app: SvnBuddyUpdaterAPP) -> Generator[TestClient, Any, None]:
    with (
        patch("svn_buddy_updater.main.initialize_database", new_callable=AsyncMock),
        patch("svn_buddy_updater.main.close_database", new_callable=AsyncMock),
    ):
        with TestClient(test_app, follow_redirects=False) as client:
            yield client


@pytest.fixture
def mock_request() -> MagicMock:
    request = MagicMock()
    request.method = "GET"
    return request


@pytest.fixture
def mock_db_session() -> AsyncMock:
    s = AsyncMock(spec=AsyncSession)
    s.begin = AsyncMock()
    s.__aenter__ = AsyncMock(return_value=s)
    return s


@pytest.fixture
def mock_db_session_factory(mock_db_session: AsyncMock) -> Generator[MagicMock, None, None]:
    _session_factory = MagicMock(spec=async_sessionmaker, return_value=mock_db_session)
    with patch(
        "svn_buddy_updater.db.session.get_session_factory", return_value=_session_factory
    ) as _mock:
        yield _mock
