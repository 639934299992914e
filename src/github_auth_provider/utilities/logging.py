"""Logging utilities for the GitHub auth provider."""

import logging
from typing import Literal

from rich.console import Console
from rich.logging import RichHandler


def get_logger(name: str) -> logging.Logger:
    """Get a logger nested under the GitHubAuthProvider namespace.

    Args:
        name: the name of the logger, which will be prefixed with 'GitHubAuthProvider.'

    Returns:
        a configured logger instance
    """
    return logging.getLogger(f"GitHubAuthProvider.{name}")


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] | int = "INFO",
    logger: logging.Logger | None = None,
    enable_rich_tracebacks: bool = True,
) -> None:
    """
    Configure logging for the GitHubAuthProvider namespace.

    Args:
        logger: the logger to configure
        level: the log level to use
    """
    if logger is None:
        logger = logging.getLogger("GitHubAuthProvider")

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=enable_rich_tracebacks,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.setLevel(level)

    # Remove any existing handlers to avoid duplicates on reconfiguration
    for hdlr in logger.handlers[:]:
        logger.removeHandler(hdlr)

    logger.addHandler(handler)
