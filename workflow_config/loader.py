"""
Configuration Loader (``workflow_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``workflow_config.schema`` dataclasses.  The single public entry point for
runtime config is ``workflow_config.get_active_config()``; this module is
its implementation detail.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError`` from the schema dataclasses.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from workflow_config.schema import DatabaseSettings, LoggingSettings, WorkflowConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top-level document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML document must be a mapping")
    return data


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    """Parse the ``database`` section."""
    return DatabaseSettings(
        url=str(data["url"]),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=int(data.get("pool_timeout", 30)),
        pool_recycle=int(data.get("pool_recycle", 1800)),
        sqlite_busy_timeout_seconds=float(
            data.get("sqlite_busy_timeout_seconds", 30.0)
        ),
    )


def parse_logging(data: Mapping[str, Any] | None) -> LoggingSettings:
    """Parse the optional ``logging`` section."""
    if not data:
        return LoggingSettings()
    return LoggingSettings(level=str(data.get("level", "INFO")))


def parse_config(
    data: Mapping[str, Any],
    *,
    source: str,
    env: Mapping[str, str] | None = None,
) -> WorkflowConfig:
    """
    Build a ``WorkflowConfig`` from a parsed YAML mapping.

    ``DATABASE_URL`` in ``env`` overrides ``database.url``.
    """
    database = dict(data["database"])
    if env and env.get("DATABASE_URL"):
        database["url"] = env["DATABASE_URL"]
    return WorkflowConfig(
        database=parse_database(database),
        logging=parse_logging(data.get("logging")),
        source=source,
    )
