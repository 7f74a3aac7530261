"""Recurrence evaluators consumed by the decision engine.

What:
  Define the :class:`Recurrence` protocol ("earliest occurrence strictly after
  an instant") and adapters over RFC 5545 RRULE text (``python-dateutil``), cron
  expressions (``croniter``), and fixed intervals.

Why:
  The decision engine only needs to ask when the schedule next fires. Keeping
  rule parsing behind a one-method protocol lets callers bring their own
  schedule sources while the bundled adapters cover the formats operators
  actually write in configuration files.

How:
  :func:`parse_recurrence` inspects the text: anything mentioning ``DTSTART``,
  ``RRULE`` or ``FREQ=`` goes through :func:`dateutil.rrule.rrulestr`, the rest
  is treated as a cron expression. Adapters reconcile naive and timezone-aware
  datetimes so a naive rule can be queried with an aware clock value.

Interfaces:
  :class:`Recurrence`, :class:`RRuleRecurrence`, :class:`CronRecurrence`,
  :class:`IntervalRecurrence`, :func:`every`, :func:`parse_recurrence`,
  :func:`occurrences`.

Invariants & Safety:
  - ``next_after(t)`` returns a value strictly greater than ``t`` or ``None``.
  - Naive rule times are interpreted as UTC when compared with aware instants,
    and results follow the awareness of the queried instant.
  - Parse failures surface as :class:`InvalidRecurrence`, never as library
    specific exceptions.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Protocol, runtime_checkable

from croniter import croniter
from dateutil.rrule import rrulestr

from .errors import InvalidRecurrence


@runtime_checkable
class Recurrence(Protocol):
    """Anything able to answer "when does the schedule fire next"."""

    def next_after(self, instant: datetime) -> Optional[datetime]:
        """Return the earliest occurrence strictly after ``instant``."""


def _to_naive_utc(instant: datetime) -> datetime:
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def _flip_awareness(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return _to_naive_utc(instant)


class RRuleRecurrence:
    """RFC 5545 recurrence rule backed by :func:`dateutil.rrule.rrulestr`.

    What:
      Accept ``DTSTART:20250101T000000\\nRRULE:FREQ=HOURLY;INTERVAL=2`` style
      text (or a bare ``RRULE:``/``FREQ=`` line) and answer occurrence queries.

    Why:
      RRULE is the schedule format used by calendar-driven refresh settings
      (e.g. "daily at 06:00 and 16:00").

    How:
      Parse once at construction time; ``dtstart`` anchors rules that omit a
      ``DTSTART`` line. Queries delegate to ``rule.after(..., inc=False)``
      after aligning the awareness of the instant with the rule.
    """

    def __init__(self, text: str, *, dtstart: Optional[datetime] = None) -> None:
        self.text = text
        try:
            try:
                self._rule = rrulestr(text, dtstart=dtstart, forceset=True)
            except ValueError:
                if dtstart is None:
                    raise
                # UNTIL must share the awareness of the anchor; retry with the
                # anchor expressed the other way, naive meaning UTC.
                self._rule = rrulestr(text, dtstart=_flip_awareness(dtstart), forceset=True)
            first = next(iter(self._rule), None)
        except (ValueError, TypeError, KeyError, IndexError) as exc:
            raise InvalidRecurrence(
                f"recurrence must be a valid RRULE expression (or null): {type(exc).__name__}: {exc}"
            ) from exc
        self._aware = first is not None and first.tzinfo is not None

    def next_after(self, instant: datetime) -> Optional[datetime]:
        if instant.tzinfo is not None and not self._aware:
            found = self._rule.after(_to_naive_utc(instant), inc=False)
            return None if found is None else found.replace(tzinfo=timezone.utc).astimezone(instant.tzinfo)
        if instant.tzinfo is None and self._aware:
            found = self._rule.after(instant.replace(tzinfo=timezone.utc), inc=False)
            return None if found is None else _to_naive_utc(found)
        return self._rule.after(instant, inc=False)

    def __repr__(self) -> str:
        return f"RRuleRecurrence({self.text!r})"


class CronRecurrence:
    """Cron expression evaluated with :mod:`croniter`."""

    def __init__(self, expression: str) -> None:
        self.expression = expression
        try:
            croniter(expression, datetime(2000, 1, 1))
        except (ValueError, KeyError) as exc:
            raise InvalidRecurrence(f"recurrence must be a valid cron expression: {exc}") from exc

    def next_after(self, instant: datetime) -> Optional[datetime]:
        # NOTE: croniter returns values with the same tzinfo as its base.
        return croniter(self.expression, instant).get_next(datetime)

    def __repr__(self) -> str:
        return f"CronRecurrence({self.expression!r})"


class IntervalRecurrence:
    """Fixed-rate schedule: ``start``, ``start + interval``, ``start + 2*interval``..."""

    def __init__(self, interval: timedelta, *, start: datetime) -> None:
        if not isinstance(interval, timedelta) or interval <= timedelta(0):
            raise InvalidRecurrence(f"interval must be a positive duration: {interval!r}")
        self.interval = interval
        self.start = start

    def next_after(self, instant: datetime) -> Optional[datetime]:
        if instant < self.start:
            return self.start
        elapsed = (instant - self.start) // self.interval
        return self.start + (elapsed + 1) * self.interval

    def __repr__(self) -> str:
        return f"IntervalRecurrence({self.interval!r}, start={self.start.isoformat()})"


def every(interval: timedelta, *, start: datetime) -> IntervalRecurrence:
    """Build a fixed-interval recurrence anchored at ``start``."""

    return IntervalRecurrence(interval, start=start)


def parse_recurrence(text: str, *, dtstart: Optional[datetime] = None) -> Recurrence:
    """Turn schedule text into a :class:`Recurrence`.

    What:
      Select the RRULE or cron adapter based on the content of ``text``.

    Why:
      Configuration files and CLI flags carry schedules as plain strings; the
      engine accepts those strings directly and must reject unusable ones with
      a consistent error kind.

    Args:
      text: RRULE block or cron expression.
      dtstart: Anchor for RRULE text without ``DTSTART``.

    Returns:
      A ready-to-query recurrence.

    Raises:
      InvalidRecurrence: When ``text`` is empty or cannot be parsed.
    """

    if not isinstance(text, str) or not text.strip():
        raise InvalidRecurrence(f"recurrence must be a non-empty string, got {text!r}")
    stripped = text.strip()
    upper = stripped.upper()
    if upper.startswith(("DTSTART", "RRULE")) or "FREQ=" in upper:
        if dtstart is not None:
            dtstart = dtstart.replace(microsecond=0)
        return RRuleRecurrence(stripped, dtstart=dtstart)
    return CronRecurrence(stripped)


def occurrences(recurrence: Recurrence, after: datetime, count: int) -> List[datetime]:
    """List up to ``count`` consecutive occurrences strictly after ``after``."""

    found: List[datetime] = []
    cursor = after
    while len(found) < count:
        nxt = recurrence.next_after(cursor)
        if nxt is None:
            break
        found.append(nxt)
        cursor = nxt
    return found
