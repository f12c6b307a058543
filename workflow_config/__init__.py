"""
workflow_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits beside ``expense_workflow``.  The engine's domain,
    selector and service layers never import from here; only the
    ``expense_workflow.db.engine`` bootstrap accepts a ``WorkflowConfig``.

Resolution order:
    1. Explicit ``path`` argument.
    2. ``$EXPENSE_WORKFLOW_CONFIG``.
    3. The packaged ``defaults.yaml``.
    ``$DATABASE_URL`` then overrides ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- an explicitly requested file does not exist.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from workflow_config.loader import load_yaml_file, parse_config
from workflow_config.schema import DatabaseSettings, LoggingSettings, WorkflowConfig

_logger = logging.getLogger("expense_workflow.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "EXPENSE_WORKFLOW_CONFIG"


def get_active_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> WorkflowConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Optional explicit YAML file.
        env: Environment mapping (defaults to ``os.environ``).

    Returns:
        A validated, frozen ``WorkflowConfig``.
    """
    env = os.environ if env is None else env

    if path is not None:
        config_path = Path(path)
    elif env.get(CONFIG_PATH_ENV):
        config_path = Path(env[CONFIG_PATH_ENV])
    else:
        config_path = _DEFAULT_CONFIG_PATH

    data = load_yaml_file(config_path)
    config = parse_config(data, source=str(config_path), env=env)

    _logger.info(
        "workflow_config_loaded",
        extra={
            "source": config.source,
            "database_backend": config.database.url.split(":", 1)[0],
            "log_level": config.logging.level,
        },
    )
    return config


__all__ = [
    "CONFIG_PATH_ENV",
    "DatabaseSettings",
    "LoggingSettings",
    "WorkflowConfig",
    "get_active_config",
]
