"""Logging configuration for cloudmanager.

Console logging for CLI commands plus a ``get_logger`` helper so every module
logs under the ``cloudmanager`` namespace.
"""

from __future__ import annotations

import logging
import sys

LOGGER_NAMESPACE = "cloudmanager"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO/DEBUG
NOISY_LOGGERS = (
    "googleapiclient",
    "googleapiclient.discovery_cache",
    "google.auth",
    "google_auth_httplib2",
    "urllib3",
)


def get_logger(name: str) -> logging.Logger:
    """Return a logger, nesting it under the cloudmanager namespace.

    Args:
        name: Module name, usually ``__name__``

    Returns:
        Logger instance
    """
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure console logging for the cloudmanager namespace.

    Args:
        verbose: Enable DEBUG level output
        quiet: Only show errors
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    root = logging.getLogger(LOGGER_NAMESPACE)
    root.setLevel(level)

    # Replace handlers so repeated CLI invocations don't duplicate output
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    root.propagate = False

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
