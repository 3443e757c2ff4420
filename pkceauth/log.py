"""Logging utilities for pkceauth.

The package logs under the ``"pkceauth"`` hierarchy; authentication
modules use the ``"pkceauth.auth"`` child logger. Secrets are passed
through ``redact_sensitive_data`` before they reach a log record.
"""

from __future__ import annotations

import logging
import sys

from typing import Any


PACKAGE_LOGGER = "pkceauth"

DEFAULT_FORMAT = "%(name)s - %(levelname)s - %(message)s"


def get_logger() -> logging.Logger:
    """Return the package logger, installing its stderr handler on first use.

    The logger starts at WARNING so an embedding application sees nothing
    from a successful login unless it asks for more.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.WARNING)
    return logger


def warn(msg: str) -> None:
    """Emit a warning on the package logger."""
    get_logger().warning(msg)


def set_level(level: int | str) -> None:
    """Set the logging level.

    Parameters
    ----------
    level : int or str
        The logging level (e.g., logging.DEBUG, "DEBUG").
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    get_logger().setLevel(level)


def set_format(fmt: str) -> None:
    """Apply a format string to every handler on the pkceauth logger.

    Parameters
    ----------
    fmt : str
        A ``logging.Formatter`` format string.
    """
    formatter = logging.Formatter(fmt)
    for handler in get_logger().handlers:
        handler.setFormatter(formatter)


# Substrings of keys whose values must never reach the logs
_SENSITIVE_KEYS = frozenset(
    {
        "token",
        "secret",
        "verifier",
        "nonce",
        "password",
        "credential",
    }
)

# Keys redacted only on an exact match
_SENSITIVE_EXACT = frozenset({"code", "state", "csrf"})


def redact_sensitive_data(
    data: dict[str, Any] | list[Any] | str | None, max_depth: int = 5
) -> dict[str, Any] | list[Any] | str | None:
    """Redact sensitive values from data for safe logging.

    Recursively traverses dicts/lists and replaces values for keys
    that match sensitive patterns with "[REDACTED]".

    Parameters
    ----------
    data : dict or list or str or None
        The data to redact.
    max_depth : int, optional
        Maximum recursion depth to prevent infinite loops (default: 5).

    Returns
    -------
    dict or list or str or None
        A copy of the data with sensitive values redacted.
    """
    if max_depth <= 0:
        return "[MAX_DEPTH]"

    if data is None:
        return None

    if isinstance(data, dict):
        result: dict[str, Any] = {}
        for k, v in data.items():
            key_lower = k.lower() if isinstance(k, str) else str(k).lower()
            if key_lower in _SENSITIVE_EXACT or any(
                sensitive in key_lower for sensitive in _SENSITIVE_KEYS
            ):
                result[k] = "[REDACTED]"
            else:
                result[k] = redact_sensitive_data(v, max_depth - 1)
        return result

    if isinstance(data, list):
        return [redact_sensitive_data(item, max_depth - 1) for item in data]

    return data
