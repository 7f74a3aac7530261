"""Expose the public utility surface for refresh-retry.

Interfaces:
  ``JsonLogger`` and ``get_logger``.
"""

from .logging import JsonLogger, get_logger

__all__ = [
    "JsonLogger",
    "get_logger",
]
