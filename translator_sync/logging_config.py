import logging
import os
from typing import List, Optional

from tqdm import tqdm

LOGGER_NAME = "translator_sync"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


class TqdmLoggingHandler(logging.StreamHandler):
    """
    Stream handler that prints through ``tqdm.write`` so log lines land above
    the per-file progress bar instead of tearing it. Writes to stderr unless
    another stream is given.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream)
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


def resolve_log_level(log_level_str: str) -> int:
    """Map a level name such as ``'debug'`` to its ``logging`` constant, defaulting to INFO."""
    level = logging.getLevelName(log_level_str.upper())
    return level if isinstance(level, int) else logging.INFO


def _build_handlers(log_file_path: Optional[str], log_to_console: bool) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file_path, encoding='utf-8'))
    if log_to_console:
        handlers.append(TqdmLoggingHandler())
    return handlers


def setup_logger(log_level_str: str, log_file_path: Optional[str], log_to_console: bool) -> logging.Logger:
    """
    Set up the package logger.

    Every module logs through ``logging.getLogger(__name__)``, so configuring the
    ``translator_sync`` logger here covers the whole package. Handlers from an
    earlier call are closed and replaced.

    Args:
        log_level_str: The logging level as a string (e.g., 'INFO', 'DEBUG').
        log_file_path: The path to the log file, or None/empty to skip file logging.
        log_to_console: Whether to log to stderr through tqdm.

    Returns:
        The configured logger instance.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_log_level(log_level_str))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in _build_handlers(log_file_path, log_to_console):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
