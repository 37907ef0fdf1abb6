"""Logging setup for the application."""

import logging
import sys

# Client libraries that log every HTTP request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "urllib3")


def setup_logger(log_level: str = "INFO", name: str = "bug_grid") -> logging.Logger:
    """
    Configure the root logger and return the application logger.

    Entry points (the API app, scripts) call this once. Library modules log
    through `logging.getLogger(__name__)` and inherit the root handler.
    Request-level chatter from the Supabase and OpenAI HTTP clients is kept
    at WARNING unless the application itself runs at DEBUG.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
                   unknown names fall back to INFO
        name: Logger name (default: bug_grid)

    Returns:
        logging.Logger: Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stdout,
        force=True,  # Override any existing configuration
    )

    client_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(client_level)

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    return logger
