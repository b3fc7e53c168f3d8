# smartshop/config/logging_config.py

"""Per-run logging for smartshop.

One file per launch under ``logs/`` (``run_YYYYmmdd_HHMMSS.log``) receives
every ``smartshop.*`` record at DEBUG. Stderr only shows records at
``Settings.CONSOLE_LOG_LEVEL`` and above so JSON on stdout stays clean.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from smartshop.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_STDERR_FORMAT = "%(levelname)-8s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PROJECT_LOGGER = "smartshop"


def _current_log_file(logger: logging.Logger) -> Path | None:
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def _console_level() -> int:
    level = logging.getLevelName(Settings.CONSOLE_LOG_LEVEL.upper())
    return level if isinstance(level, int) else logging.WARNING


def setup_logging() -> Path:
    """Attach the run file and stderr handlers to the project logger.

    Idempotent: a second call returns the file opened by the first.
    """
    project_logger = logging.getLogger(PROJECT_LOGGER)
    existing = _current_log_file(project_logger)
    if existing is not None:
        return existing

    Settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = Settings.LOGS_DIR / f"run_{stamp}.log"

    project_logger.setLevel(logging.DEBUG)

    to_file = logging.FileHandler(log_file, encoding="utf-8")
    to_file.setLevel(logging.DEBUG)
    to_file.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))

    to_stderr = logging.StreamHandler(sys.stderr)
    to_stderr.setLevel(_console_level())
    to_stderr.setFormatter(logging.Formatter(_STDERR_FORMAT))

    project_logger.addHandler(to_file)
    project_logger.addHandler(to_stderr)

    # Transport libraries are chatty at DEBUG
    for name in Settings.QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    project_logger.info("Logging initialised, log file: %s", log_file)
    return log_file
