import logging
import os
import traceback
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

# Libraries whose debug chatter drowns out per-image progress
_NOISY_LOGGERS = ("docker", "urllib3")


def setup_logging(level: Optional[int] = None, fmt: Optional[str] = None) -> None:
    """Configure root logging once. Subsequent calls are no-ops.

    The level defaults to the LOG_LEVEL environment variable, then INFO.
    """
    if logging.getLogger().handlers:
        return
    if level is None:
        level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=fmt or DEFAULT_FORMAT)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger by name, after ensuring logging is configured."""
    setup_logging()
    return logging.getLogger(name) if name else logging.getLogger("hub_mirror")


def log_exception(logger: logging.Logger, message: str = "An error occurred", exc_info: Exception = None) -> None:
    """Log a failure with its type, message and the current traceback.

    Args:
        logger: Logger instance to use
        message: Custom error message to log before the traceback
        exc_info: Exception instance (if None, uses current exception context)
    """
    logger.error(message)
    if exc_info is not None:
        logger.error(f"Exception type: {type(exc_info).__name__}")
        logger.error(f"Exception message: {str(exc_info)}")
    logger.debug("Full traceback:")
    logger.debug(traceback.format_exc())
