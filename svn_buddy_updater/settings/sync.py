from datetime import timedelta
from functools import cached_property
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from svn_buddy_updater.constants import APP_DIR, MIN_PHP_VERSION

__all__ = (
    "ReleaseSyncSettings",
    "GitHubSettings",
    "StorageSettings",
)
WORKSPACE_DIR = APP_DIR.parent / "workspace"
DEFAULT_BUILD_COMMANDS = [
    "composer install --no-interaction --prefer-dist",
    "bin/svn-buddy dev:phar-create --build-dir={build_dir}",
]


class ReleaseSyncSettings(BaseSettings):
    """Snapshot building / retention settings which are loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", env_prefix="SYNC_")

    repository_path: Path = Field(
        default_factory=lambda: WORKSPACE_DIR / "repository",
        description="Working copy of the tracked repository",
    )
    snapshots_path: Path = Field(
        default_factory=lambda: WORKSPACE_DIR / "snapshots",
        description="Directory for built snapshot artifacts",
    )
    branch: str = "master"
    upstream_owner: str = "console-helpers"
    upstream_repo: str = "svn-buddy"
    snapshot_lifetime_days: int = Field(default=21, ge=1)
    isolated_builds: bool = Field(
        default=True,
        description="Build each snapshot in a disposable worktree instead of the working copy",
    )
    build_commands: list[str] = Field(default_factory=lambda: list(DEFAULT_BUILD_COMMANDS))
    command_timeout: float = Field(default=120.0, gt=0)
    build_timeout: float = Field(default=900.0, gt=0)
    sync_timeout: float = Field(default=1800.0, gt=0)
    min_php_version: int = MIN_PHP_VERSION

    @field_validator("build_commands")
    @classmethod
    def validate_build_commands(cls, value: list[str]) -> list[str]:
        commands = [command.strip() for command in value if command.strip()]
        if not commands:
            raise ValueError("At least one build command is required")

        return commands

    @property
    def snapshot_lifetime(self) -> timedelta:
        return timedelta(days=self.snapshot_lifetime_days)


class GitHubSettings(BaseSettings):
    """Upstream (GitHub) API settings which are loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", env_prefix="GITHUB_")

    token: SecretStr | None = Field(default=None, description="Optional API token")
    api_url: str = "https://api.github.com"
    timeout: float = 30.0
    per_page: int = Field(default=100, ge=1, le=100)


class StorageSettings(BaseSettings):
    """S3 settings which are loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", env_prefix="S3_")

    bucket: str = Field(default="", description="Bucket for snapshot artifacts")
    region: str | None = None
    endpoint_url: str | None = None
    public_base_url: str | None = Field(
        default=None,
        description="Base URL for public links (bucket's virtual-host URL by default)",
    )
    acl: str = "public-read"
    delete_batch_size: int = Field(default=1000, ge=1, le=1000)
    connect_timeout: int = 10
    read_timeout: int = 60

    @cached_property
    def base_url(self) -> str:
        if self.public_base_url:
            return self.public_base_url.rstrip("/")

        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}"

        region_part = f".{self.region}" if self.region else ""
        return f"https://{self.bucket}.s3{region_part}.amazonaws.com"
