"""Logging configuration for the application."""

import logging
import sys

from fieldservice.core.config import get_settings

# Every module logger hangs off this one, so its level covers the whole service.
ROOT_LOGGER = "fieldservice"

# Chatty request loggers: a Firestore watch logs one line per poll at INFO.
_DEPENDENCY_LOGGERS = ("httpx", "httpcore", "google.auth")


def setup_logging() -> None:
    """Configure application-wide logging.

    Root handler writes to stdout at INFO. The fieldservice loggers use
    settings.log_level (DEBUG when settings.debug is True and no level is
    set); HTTP client loggers use settings.dependency_log_level.
    """
    settings = get_settings()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if settings.log_level:
        level = settings.log_level.upper()
    else:
        level = "DEBUG" if settings.debug else "INFO"
    logging.getLogger(ROOT_LOGGER).setLevel(level)
    for name in _DEPENDENCY_LOGGERS:
        logging.getLogger(name).setLevel(settings.dependency_log_level.upper())


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the fieldservice hierarchy.

    Args:
        name: Usually __name__ of the calling module. Names outside the
            package (scripts, __main__) are nested under "fieldservice".

    Returns:
        Logger instance.
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
