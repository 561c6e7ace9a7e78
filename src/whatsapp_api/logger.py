"""
Shared application logger.

Everything logs through a single named logger so that uvicorn, the
lifecycle controller and the webhook notifier share one format.
Errors are optionally mirrored into a dedicated file.
"""

import logging
import sys

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = "whatsapp_api",
    level: str = "INFO",
    error_log_file: str | None = None,
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        name: Logger name
        level: Log level name (e.g., INFO, DEBUG)
        error_log_file: Optional path of a file receiving ERROR records only

    Returns:
        Configured logger instance
    """
    log = logging.getLogger(name)
    log.setLevel(level.upper())

    # Re-running setup (tests, reloads) must not stack handlers
    if log.handlers:
        return log

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    log.addHandler(stream_handler)

    if error_log_file:
        file_handler = logging.FileHandler(error_log_file, encoding="utf-8")
        file_handler.setLevel(logging.ERROR)
        file_handler.setFormatter(formatter)
        log.addHandler(file_handler)

    return log


logger = setup_logger(level=settings.log_level, error_log_file=settings.error_log_file)
