"""Database module for the application."""

from svn_buddy_updater.db.models import BaseModel, Release
from svn_buddy_updater.db.repositories import ReleaseRepository
from svn_buddy_updater.db.services import SASessionUOW
from svn_buddy_updater.db.session import get_session_factory, initialize_database, close_database

__all__ = (
    # Models
    "BaseModel",
    "Release",
    # Repositories
    "ReleaseRepository",
    # Services
    "SASessionUOW",
    # Session management
    "get_session_factory",
    "initialize_database",
    "close_database",
)
