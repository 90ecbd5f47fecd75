"""Logging utilities for the alert relay.

Handlers, level and format are configured once with ``logging.basicConfig()``
by the entry point (``main.py`` or ``alert-relay serve``) to avoid duplicate
handlers; modules only ask for a named logger.

Example:
    Typical usage in a module::

        from alert_relay.logger import get_logger

        logger = get_logger("Dispatcher")
        logger.info("Alert delivered")
"""

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "AlertRelay") -> logging.Logger:
    """Retrieve a logger instance.

    Args:
        name: The logger name. Defaults to "AlertRelay".

    Returns:
        A ``logging.Logger`` instance bound to the given name.
    """
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger for the process entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        force=True,  # uvicorn may have installed handlers already
    )
