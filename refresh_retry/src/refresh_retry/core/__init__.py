"""Decision core of refresh-retry.

What:
  Re-export the decision engine, the alignment strategies, the recurrence
  adapters, and the validation error taxonomy.

Interfaces:
  ``decide``, ``decide_from_mapping``, ``Decision``, ``Event``,
  ``RefreshPolicy``, ``DEFAULT_TIMEOUT``, strategy helpers, recurrence helpers
  and error classes.

Invariants & Safety:
  - Everything exported here is pure: no clock reads, no IO, no global state.
"""

from .engine import DEFAULT_TIMEOUT, Decision, Event, RefreshPolicy, decide, decide_from_mapping
from .errors import (
    ERROR_KINDS,
    InvalidAttemptNumber,
    InvalidEvent,
    InvalidParameters,
    InvalidRecurrence,
    InvalidRetryDelays,
    InvalidTimeout,
    RefreshRetryError,
)
from .recurrence import (
    CronRecurrence,
    IntervalRecurrence,
    Recurrence,
    RRuleRecurrence,
    every,
    occurrences,
    parse_recurrence,
)
from .strategies import (
    DEFAULT_STRATEGY,
    STRATEGIES,
    align_to_schedule,
    resolve_strategy,
    retry_align_planned,
    retry_until_success,
    whichever_first,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "Decision",
    "Event",
    "RefreshPolicy",
    "decide",
    "decide_from_mapping",
    "ERROR_KINDS",
    "RefreshRetryError",
    "InvalidRecurrence",
    "InvalidTimeout",
    "InvalidAttemptNumber",
    "InvalidRetryDelays",
    "InvalidEvent",
    "InvalidParameters",
    "Recurrence",
    "RRuleRecurrence",
    "CronRecurrence",
    "IntervalRecurrence",
    "every",
    "occurrences",
    "parse_recurrence",
    "DEFAULT_STRATEGY",
    "STRATEGIES",
    "resolve_strategy",
    "retry_align_planned",
    "retry_until_success",
    "align_to_schedule",
    "whichever_first",
]
