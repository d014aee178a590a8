from fastapi import APIRouter

from svn_buddy_updater.models import HealthCheck
from svn_buddy_updater.modules.api.base import ErrorHandlingBaseRoute
from svn_buddy_updater.utils import utcnow

__all__ = ("router",)


router = APIRouter(
    prefix="/system",
    tags=["system"],
    responses={404: {"description": "Not found"}},
    route_class=ErrorHandlingBaseRoute,
)


@router.get("/health/", response_model=HealthCheck)
async def health_check() -> HealthCheck:
    """Health check endpoint (doesn't touch DB or external services)."""
    return HealthCheck(status="healthy", timestamp=utcnow(skip_tz=False))
