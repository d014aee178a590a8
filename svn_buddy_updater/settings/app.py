from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from svn_buddy_updater.settings.log import LogSettings
from svn_buddy_updater.settings.sync import ReleaseSyncSettings, GitHubSettings, StorageSettings

__all__ = ("AppSettings", "FlagsSettings")


class FlagsSettings(BaseSettings):
    """Implements settings which are loaded from environment variables"""

    model_config = SettingsConfigDict(env_prefix="FLAG_")

    api_docs_enabled: bool = False
    api_cache_enabled: bool = True
    use_redis: bool = Field(default=True, description="Enable Redis cache backend")

    @property
    def latest_versions_cache_enabled(self) -> bool:
        """
        Sync passes run in separate (CLI) processes, so their invalidation reaches
        the API only through the shared redis backend
        """
        return self.api_cache_enabled and self.use_redis


class AppSettings(BaseSettings):
    """Application settings which are loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_host: str = "localhost"
    app_port: int = 8004
    flags: FlagsSettings = Field(default_factory=FlagsSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    sync: ReleaseSyncSettings = Field(default_factory=ReleaseSyncSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
