import logging

from fastapi import status


class BaseApplicationError(Exception):
    """Base application error"""

    log_level: int = logging.ERROR
    log_message: str = "Application error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AppSettingsError(BaseApplicationError):
    """Settings error"""


class StartupError(BaseApplicationError):
    """Startup error"""


class DatabaseError(BaseApplicationError):
    """Database error"""


class InstanceLookupError(BaseApplicationError):
    """Instance lookup error"""

    log_level: int = logging.WARNING
    log_message: str = "Instance not found"
    status_code: int = status.HTTP_404_NOT_FOUND


class CacheBackendError(BaseApplicationError):
    """Cache access error"""

    log_level: int = logging.ERROR
    log_message: str = "Unable to use cache backend"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


class CommandError(BaseApplicationError):
    """External command failed (nonzero exit, timeout or missing executable)"""

    log_message: str = "Command execution error"

    def __init__(self, message: str, returncode: int = -1, output: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class ReleaseSyncError(BaseApplicationError):
    """Base error for release synchronization passes"""

    log_message: str = "Release synchronization error"


class UpstreamFetchError(ReleaseSyncError):
    """Upstream release API is unreachable or rejected the request"""

    log_message: str = "Unable to fetch upstream releases"
    status_code: int = status.HTTP_502_BAD_GATEWAY


class SourceControlError(ReleaseSyncError):
    """Checkout / pull / log failure on the tracked repository"""

    log_message: str = "Source control error"


class NoEligibleCommitError(ReleaseSyncError):
    """No commit exists before the weekly cutoff"""

    log_message: str = "No snapshot-eligible commit"


class BuildError(ReleaseSyncError):
    """Build command failed or didn't produce expected artifacts"""

    log_message: str = "Artifact build error"


class StorageError(ReleaseSyncError):
    """Object store rejected an upload or a delete"""

    log_message: str = "Artifact storage error"
    status_code: int = status.HTTP_502_BAD_GATEWAY


class DuplicateVersionError(ReleaseSyncError):
    """Release with the same version name is already stored"""

    log_level: int = logging.WARNING
    log_message: str = "Release version already exists"
    status_code: int = status.HTTP_409_CONFLICT
