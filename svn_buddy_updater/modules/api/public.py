import logging
from typing import Any

from fastapi import APIRouter, Path
from starlette import status
from starlette.responses import RedirectResponse

from svn_buddy_updater.constants import CACHE_KEY_LATEST_VERSIONS, CACHE_TTL_LATEST_VERSIONS
from svn_buddy_updater.exceptions import InstanceLookupError
from svn_buddy_updater.modules.api.base import ErrorHandlingBaseRoute
from svn_buddy_updater.modules.api.dependencies import OrchestratorDep
from svn_buddy_updater.services.cache import CacheProtocol, get_cache
from svn_buddy_updater.settings import SettingsDep

logger = logging.getLogger(__name__)
__all__ = ("public_router", "download_router")


public_router = APIRouter(
    prefix="/releases",
    tags=["public"],
    responses={404: {"description": "Not found"}},
    route_class=ErrorHandlingBaseRoute,
)
download_router = APIRouter(
    prefix="/download",
    tags=["public"],
    responses={404: {"description": "Not found"}},
    route_class=ErrorHandlingBaseRoute,
)


@public_router.get("/latest/")
async def get_latest_versions(
    settings: SettingsDep,
    orchestrator: OrchestratorDep,
) -> dict[str, Any]:
    """
    Latest version per stability (public endpoint, used by the tool's update checks):
    {"stable": {"path": ..., "version": ..., "min-php": ...}, "snapshot": {...}}
    """
    cache: CacheProtocol | None = None
    if settings.flags.latest_versions_cache_enabled:
        cache = get_cache()
        cached_data = await cache.get(CACHE_KEY_LATEST_VERSIONS)
        if cached_data and isinstance(cached_data, dict):
            logger.info("[API] Public: Latest versions found in cache: %r", list(cached_data))
            return cached_data

    logger.debug("[API] Public: No latest versions in cache, getting from database")
    latest_versions = await orchestrator.latest_versions_for_stability()
    response_result = {
        str(stability): latest_version.model_dump(by_alias=True)
        for stability, latest_version in latest_versions.items()
    }
    if cache is not None:
        await cache.set(CACHE_KEY_LATEST_VERSIONS, response_result, ttl=CACHE_TTL_LATEST_VERSIONS)

    logger.info("[API] Public: Latest versions got from DB: %r", response_result)
    return response_result


@download_router.get("/{version}/{file_name}")
async def download_artifact(
    orchestrator: OrchestratorDep,
    version: str = Path(..., description="Release version (tag or commit hash)"),
    file_name: str = Path(..., description="Artifact file name (phar or its signature)"),
) -> RedirectResponse:
    """Redirects to the stored artifact's URL"""
    url = await orchestrator.download_url(version, file_name)
    if not url:
        raise InstanceLookupError(f"Artifact {file_name} of version {version} not found")

    logger.debug("[API] Public: Redirecting %s/%s -> %s", version, file_name, url)
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)
