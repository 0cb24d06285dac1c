"""Logging setup for the claims review service."""

import logging

from claims_review.config import LOG_LEVEL

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = LOG_LEVEL, log_format: str = DEFAULT_FORMAT) -> logging.Logger:
    """
    Configures the root logger.

    The Lambda runtime installs its own handler on the root logger;
    that handler is kept and only the level is applied. Elsewhere a
    console handler is added.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string for the console handler

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    if not root_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(console_handler)

    return root_logger
