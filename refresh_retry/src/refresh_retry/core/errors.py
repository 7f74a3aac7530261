"""Validation error taxonomy for refresh decisions.

What:
  Define the exception hierarchy raised when the inputs of a refresh decision
  cannot be accepted: recurrence rule, timeout, attempt number, retry delays,
  event, and unknown parameters.

Why:
  Job runners persist and act on every decision. A malformed input must stop
  the call before anything is computed, and the runner needs a stable,
  machine-readable kind to decide whether to alert an operator or halt the
  job's automation.

How:
  Every error derives from :class:`RefreshRetryError` (itself a
  :class:`ValueError`) and carries a ``kind`` class attribute matching the
  taxonomy name plus the human-readable ``detail`` passed at construction.

Interfaces:
  :class:`RefreshRetryError`, :class:`InvalidRecurrence`,
  :class:`InvalidTimeout`, :class:`InvalidAttemptNumber`,
  :class:`InvalidRetryDelays`, :class:`InvalidEvent`,
  :class:`InvalidParameters`, :data:`ERROR_KINDS`.

Invariants & Safety:
  - ``kind`` never depends on the offending value, so the same invalid input
    always maps to the same kind.
  - ``str(error)`` always starts with the detail string.
"""
from __future__ import annotations

from typing import Dict, Type


class RefreshRetryError(ValueError):
    """Base class for refresh decision validation failures.

    Attributes:
      kind: Taxonomy name, identical to the concrete class name.
      detail: Human-readable explanation of the rejected input.
    """

    kind = "RefreshRetryError"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict[str, str]:
        """Return the ``{"kind": ..., "detail": ...}`` payload used by the CLI."""

        return {"kind": self.kind, "detail": self.detail}


class InvalidRecurrence(RefreshRetryError):
    """The recurrence rule could not be parsed or evaluated."""

    kind = "InvalidRecurrence"


class InvalidTimeout(RefreshRetryError):
    """The timeout is not a strictly positive duration."""

    kind = "InvalidTimeout"


class InvalidAttemptNumber(RefreshRetryError):
    """The attempt number is not a non-negative integer."""

    kind = "InvalidAttemptNumber"


class InvalidRetryDelays(RefreshRetryError):
    """The retry delays are not a sequence of non-negative durations."""

    kind = "InvalidRetryDelays"


class InvalidEvent(RefreshRetryError):
    """The event is not one of ``start``, ``success`` or ``failure``."""

    kind = "InvalidEvent"


class InvalidParameters(RefreshRetryError):
    """Unknown parameter names or an unknown alignment strategy were supplied."""

    kind = "InvalidParameters"


ERROR_KINDS: Dict[str, Type[RefreshRetryError]] = {
    cls.kind: cls
    for cls in (
        InvalidRecurrence,
        InvalidTimeout,
        InvalidAttemptNumber,
        InvalidRetryDelays,
        InvalidEvent,
        InvalidParameters,
    )
}
