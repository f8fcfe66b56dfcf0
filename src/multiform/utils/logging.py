"""Logging configuration for Multiform.

Multiform modules log through module-level loggers under the `multiform`
namespace. Applications that embed the coordinator usually own the logging
setup. `configure_logging` is a convenience for the CLI and for scripts.
"""

import logging
import os
import sys

DEFAULT_FORMAT = "%(asctime)s %(levelname)s: %(message)s"
DEBUG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Loggers that never go below WARNING unless debugging
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "multiform.adapters")


def resolve_level(level=None) -> int:
    """Turn a level name (or `None`, for `MULTIFORM_LOG_LEVEL`) into a number.

    Unknown names fall back to INFO.
    """
    name = str(level or os.environ.get("MULTIFORM_LOG_LEVEL") or "INFO").upper()
    numeric_level = logging.getLevelName(name)
    return numeric_level if isinstance(numeric_level, int) else logging.INFO


def configure_logging(level=None, format_string=None):
    """Send log records to stderr and set Multiform's logger levels.

    Args:
        level: Level name like DEBUG or WARNING. Read from the
            `MULTIFORM_LOG_LEVEL` environment variable when not given.
        format_string: Format of log lines. Includes logger names when
            debugging, by default.
    """
    numeric_level = resolve_level(level)
    debugging = numeric_level <= logging.DEBUG

    logging.basicConfig(
        level=numeric_level,
        format=format_string or (DEBUG_FORMAT if debugging else DEFAULT_FORMAT),
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    if debugging:
        logging.getLogger("multiform").setLevel(logging.DEBUG)
        return

    logging.getLogger("multiform.coordinator").setLevel(numeric_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
