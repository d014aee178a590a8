from .base import ErrorHandlingBaseRoute
from .system import router as system_router

__all__ = (
    "system_router",
    "ErrorHandlingBaseRoute",
)
