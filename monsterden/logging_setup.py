"""Central logging configuration utilities.

:func:`setup_logging` configures the root logger from the ``logging.ini``
named by :mod:`monsterden.config`. When no file is configured (Lambda, tests)
it falls back to ``logging.basicConfig`` at the level given by ``LOG_LEVEL``.
Calling it again is a no-op once the root logger has handlers.
"""
from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path

from monsterden import config

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# boto3 logs every request at INFO which drowns out ledger messages
_NOISY_LOGGERS = ("botocore", "boto3", "urllib3")


def _resolve_config_path() -> Path | None:
    log_config = config.log_config
    if not log_config:
        return None
    config_path = Path(log_config)
    if not config_path.is_absolute():
        base = config.repo_root or Path.cwd()
        config_path = base / config_path
    return config_path if config_path.exists() else None


def setup_logging() -> None:
    """Configure application logging once per process.

    If the root logger already has handlers, the function returns immediately
    to avoid overriding existing logging configuration (e.g. when uvicorn
    configures logging via ``--log-config``).
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    config_path = _resolve_config_path()
    if config_path is not None:
        logging.config.fileConfig(config_path, disable_existing_loggers=False)
    else:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(level=level, format=DEFAULT_FORMAT)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
