from typing import Annotated

from fastapi import Depends

from svn_buddy_updater.services.cache import get_cache
from svn_buddy_updater.services.orchestrator import ReleaseSyncOrchestrator, make_orchestrator
from svn_buddy_updater.settings import SettingsDep

__all__ = (
    "get_orchestrator",
    "OrchestratorDep",
)


def get_orchestrator(settings: SettingsDep) -> ReleaseSyncOrchestrator:
    """Orchestrator bound to the global session factory (query surface only is used by API)"""
    return make_orchestrator(settings, cache=get_cache())


OrchestratorDep = Annotated[ReleaseSyncOrchestrator, Depends(get_orchestrator)]