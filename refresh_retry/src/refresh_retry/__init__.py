"""
Module: refresh_retry.__init__

What:
  Aggregate package exports for refresh-retry, the decision function that tells
  a periodic background job when to run next, when its attempt times out, and
  whether its retry budget is exhausted.

Why:
  Job runners import the engine directly; a flat, stable surface keeps them
  independent from the internal layout.

How:
  Re-export the decision API from :mod:`refresh_retry.core` and enumerate the
  public subpackages in ``__all__``.

Interfaces:
  - decide / decide_from_mapping / Decision / Event / RefreshPolicy.
  - core: Decision engine, strategies, recurrence adapters, errors.
  - config: Pydantic schema and YAML loaders.
  - utils: Structured logging.

Invariants:
  - Importing the package has no side effects beyond module loading.
"""

from .core import Decision, Event, RefreshPolicy, RefreshRetryError, decide, decide_from_mapping

__version__ = "0.1.0"

__all__ = [
    "Decision",
    "Event",
    "RefreshPolicy",
    "RefreshRetryError",
    "decide",
    "decide_from_mapping",
    "config",
    "core",
    "utils",
]
