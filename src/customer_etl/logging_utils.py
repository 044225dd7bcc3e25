from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

from .config_loader import PipelineConfig

LOG_LEVEL_ENV = "CUSTOMER_ETL_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LEVEL = "WARNING"

logger = logging.getLogger(__name__)


def resolve_log_level(
    config: PipelineConfig, level_override: Optional[str] = None
) -> Tuple[str, str]:
    """
    Pick the level name and where it came from.

    ``CUSTOMER_ETL_LOG_LEVEL`` beats ``--log-level``, which beats
    ``logging.level`` in the YAML config; ``WARNING`` otherwise.
    """
    candidates = (
        (os.getenv(LOG_LEVEL_ENV), LOG_LEVEL_ENV),
        (level_override, "--log-level"),
        (config.logging.level, "config"),
    )
    for value, source in candidates:
        if value and value.strip():
            return value.strip().upper(), source
    return DEFAULT_LEVEL, "default"


def _level_value(name: str) -> Optional[int]:
    if name.isdigit():
        return int(name)
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else None


def configure_logging(config: PipelineConfig, level_override: Optional[str] = None) -> int:
    """
    Set the root level for a cleaning run and return it.

    An unknown level name falls back to ``WARNING`` with a warning naming the
    source that supplied it. Python warnings (pandas ``ParserWarning`` and
    friends) are routed into the log so they share its format and level.
    """
    name, source = resolve_log_level(config, level_override)
    level = _level_value(name)

    root_logger = logging.getLogger()
    effective = level if level is not None else logging.WARNING
    if root_logger.handlers:
        root_logger.setLevel(effective)
    else:
        logging.basicConfig(level=effective, format=LOG_FORMAT)
    logging.captureWarnings(True)

    if level is None:
        logger.warning("Unknown log level %r from %s; using WARNING", name, source)
    else:
        logger.debug("Log level %s set from %s", logging.getLevelName(level), source)
    return effective
