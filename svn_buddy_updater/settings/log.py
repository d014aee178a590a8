import logging
from typing import Annotated, TypedDict, Any

from pydantic import StringConstraints
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = (
    "LOG_LEVELS_PATTERN",
    "LogSettings",
)

LOG_LEVELS_PATTERN = "DEBUG|INFO|WARNING|ERROR|CRITICAL"
LogLevelString = Annotated[
    str, StringConstraints(to_upper=True, pattern=rf"^(?i:{LOG_LEVELS_PATTERN})$")
]


class LogDictConfig(TypedDict):
    version: int
    disable_existing_loggers: bool
    formatters: dict[str, dict[str, str]]
    handlers: dict[str, dict[str, str | list[logging.Filter]]]
    loggers: dict[str, dict[str, list[str] | int | str | bool]]


class LoggingHealthCheckFilter(logging.Filter):
    """
    Simple filter for logging records: skip access to health-check endpoint
    (it is polled by monitoring too often)
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter out health-check access logs"""
        return "/system/health" not in record.getMessage().lower()


class LogSettings(BaseSettings):
    """Implements settings which are loaded from environment variables"""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: LogLevelString = "INFO"
    skip_health_access: bool = False
    format: str = "[%(asctime)s] %(levelname)s [%(filename)s:%(lineno)s] %(message)s"
    datefmt: str = "%d.%m.%Y %H:%M:%S"

    @property
    def dict_config(self) -> LogDictConfig:
        filters: list[logging.Filter] = []
        if self.skip_health_access:
            filters.append(LoggingHealthCheckFilter("skip-health-access"))

        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": self.format,
                    "datefmt": self.datefmt,
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "filters": filters,
                }
            },
            "loggers": {
                "svn_buddy_updater": {
                    "handlers": ["console"],
                    "level": self.level,
                    "propagate": False,
                },
                "fastapi": {"handlers": ["console"], "level": self.level, "propagate": False},
                "uvicorn.error": {"handlers": ["console"], "level": self.level, "propagate": False},
                "uvicorn.access": {
                    "handlers": ["console"],
                    "level": self.level,
                    "propagate": False,
                },
            },
        }

    @property
    def dict_config_any(self) -> dict[str, Any]:
        """Just simple workaround for type checking in logging config"""
        return dict(self.dict_config)
