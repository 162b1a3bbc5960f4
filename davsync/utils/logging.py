"""
Logging setup shared by the CLI and the backup core.

Every module logs through ``logging.getLogger(__name__)`` below the
``davsync`` logger. setup_logging attaches the handlers once per process:
a console handler on stderr at the chosen level, and a daily file in the
log directory that records everything down to DEBUG.

Environment:
    DAVSYNC_DEBUG      "1", "true" or "yes" forces DEBUG
    DAVSYNC_LOG_LEVEL  level name, INFO when unset or unknown
    DAVSYNC_LOG_FILE   explicit log file, or "none"/"disabled" for no file
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "davsync"
LOG_FILE_PREFIX = "davsync_"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s %(levelname)-8s %(name)s (%(filename)s:%(lineno)d): %(message)s"
)

ENV_DEBUG = "DAVSYNC_DEBUG"
ENV_LOG_LEVEL = "DAVSYNC_LOG_LEVEL"
ENV_LOG_FILE = "DAVSYNC_LOG_FILE"

_LEVEL_NAMES = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_FILE_DISABLED = ("none", "disabled", "")


def _stderr_is_color_terminal() -> bool:
    isatty = getattr(sys.stderr, "isatty", None)
    if isatty is None or not isatty():
        return False
    # https://no-color.org/
    if os.environ.get("NO_COLOR"):
        return False
    return os.environ.get("TERM", "") != "dumb"


class ColoredFormatter(logging.Formatter):
    """Console formatter that tints level name and message by severity."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and _stderr_is_color_terminal()

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_colors or color is None:
            return super().format(record)

        # The same record reaches the file handler, which must stay plain
        tinted = logging.makeLogRecord(record.__dict__)
        tinted.levelname = f"{color}{record.levelname}{self.RESET}"
        tinted.msg = f"{color}{record.msg}{self.RESET}"
        return super().format(tinted)


def get_log_level_from_env() -> int:
    """Level requested through DAVSYNC_DEBUG or DAVSYNC_LOG_LEVEL."""
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG
    name = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
    return _LEVEL_NAMES.get(name, logging.INFO)


def get_log_file_path(log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Where file logging should write, if anywhere.

    DAVSYNC_LOG_FILE wins over ``log_dir``. Without either there is no
    log file.
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        return None if override.lower() in _FILE_DISABLED else Path(override)
    if log_dir is None:
        return None
    return log_dir / f"{LOG_FILE_PREFIX}{datetime.now():%Y%m%d}.log"


def _open_file_handler(logger: logging.Logger, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not create log file {path}: {e}")
        return
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT))
    logger.addHandler(handler)
    logger.debug(f"Logging to {path}")


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Attach console and file handlers to the davsync logger.

    Calling it again replaces the handlers from the previous call.

    Args:
        level: Console level; taken from the environment when None
        verbose: Force DEBUG and include source locations on the console
        log_dir: Directory for the daily log file
        log_file: Explicit log file, used instead of log_dir
        enable_file_logging: Set to False for console output only
        use_colors: Color console output when stderr is a color terminal

    Returns:
        The ``davsync`` logger
    """
    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = get_log_level_from_env()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = False

    fmt = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        ColoredFormatter(fmt, DATE_FORMAT)
        if use_colors
        else logging.Formatter(fmt, DATE_FORMAT)
    )
    logger.addHandler(console)

    if enable_file_logging:
        path = log_file or get_log_file_path(log_dir)
        if path is not None:
            _open_file_handler(logger, path)

    return logger


def cleanup_old_logs(log_dir: Path, keep_count: int = 10) -> int:
    """
    Delete all but the ``keep_count`` newest daily log files.

    Other files in the directory are left alone. Returns the number of
    files deleted; ``keep_count`` 0 deletes nothing.
    """
    if keep_count <= 0 or not log_dir.is_dir():
        return 0

    logs = sorted(
        log_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda path: path.stat().st_mtime,
    )
    deleted = 0
    for path in logs[:-keep_count]:
        try:
            path.unlink()
        except OSError as e:
            logging.getLogger(__name__).debug(f"Could not delete {path}: {e}")
            continue
        deleted += 1
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``, placed under the davsync logger if needed."""
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_log_level(level: int) -> None:
    """Change the console level; file handlers keep logging DEBUG."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    for handler in logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(level)


__all__ = [
    "CONSOLE_FORMAT",
    "DATE_FORMAT",
    "DEFAULT_FORMAT",
    "VERBOSE_FORMAT",
    "ColoredFormatter",
    "cleanup_old_logs",
    "get_log_file_path",
    "get_log_level_from_env",
    "get_logger",
    "set_log_level",
    "setup_logging",
]
