"""
Configuration Schema (``workflow_config.schema``).

Responsibility
--------------
Frozen dataclasses describing the runtime configuration of the workflow
engine.  These are the only shapes the loader produces; every other
component receives a ``WorkflowConfig`` and never reads YAML or
environment variables itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection and pool settings for ``expense_workflow.db.engine``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    # Seconds a SQLite writer waits for the database lock before failing.
    sqlite_busy_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size < 1:
            raise ValueError(f"database.pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(
                f"database.max_overflow must be >= 0, got {self.max_overflow}"
            )
        if self.pool_timeout <= 0:
            raise ValueError(
                f"database.pool_timeout must be > 0, got {self.pool_timeout}"
            )
        if self.sqlite_busy_timeout_seconds <= 0:
            raise ValueError(
                "database.sqlite_busy_timeout_seconds must be > 0, "
                f"got {self.sqlite_busy_timeout_seconds}"
            )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


@dataclass(frozen=True)
class LoggingSettings:
    """Logger hierarchy settings for ``expense_workflow.logging_config``."""

    level: str = "INFO"

    def __post_init__(self) -> None:
        if logging.getLevelName(self.level.upper()) not in (
            logging.DEBUG,
            logging.INFO,
            logging.WARNING,
            logging.ERROR,
            logging.CRITICAL,
        ):
            raise ValueError(f"logging.level is not a valid level: {self.level!r}")

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level.upper())


@dataclass(frozen=True)
class WorkflowConfig:
    """The complete, validated runtime configuration."""

    database: DatabaseSettings
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: str = "<defaults>"
