# ABOUTME: Logging configuration
# ABOUTME: Sets up a console handler on the app logger hierarchy

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO", log_format: str | None = None) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format (None for default)

    Returns:
        The configured "app" logger
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger("app")
    logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicate logging
    logger.handlers = []

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(log_format or DEFAULT_FORMAT))
    logger.addHandler(handler)

    return logger
