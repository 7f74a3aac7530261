"""Retry alignment strategies.

What:
  Decide whether an ad-hoc retry time or the next recurring occurrence should
  govern the next refresh. Every strategy honours the same contract
  ``(retry_at, planned_at, timeout) -> chosen_at``.

Why:
  Operators trade faster recovery against schedule predictability differently.
  Keeping the tie-break in small interchangeable functions lets the decision
  engine stay unaware of which trade-off is in force.

How:
  Each strategy is a plain function. :func:`resolve_strategy` maps a registry
  name (or a callable) to a function wrapped by :func:`_absence_rule`, so the
  "absent input yields the other input" behaviour is shared by all of them.

Interfaces:
  :func:`retry_align_planned` (default), :func:`retry_until_success`,
  :func:`align_to_schedule`, :func:`whichever_first`, :data:`STRATEGIES`,
  :data:`DEFAULT_STRATEGY`, :func:`resolve_strategy`.

Invariants & Safety:
  - When either time is ``None`` the other one is returned unchanged.
  - Strategies only ever return one of their two time arguments.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from functools import wraps
from typing import Callable, Dict, Optional, Union

from .errors import InvalidParameters

AlignmentStrategy = Callable[[Optional[datetime], Optional[datetime], timedelta], Optional[datetime]]


def retry_align_planned(retry_at: datetime, planned_at: datetime, timeout: timedelta) -> datetime:
    """Prefer the retry only when it can finish before the planned run.

    What:
      Return ``retry_at`` when an attempt started then, running for the full
      ``timeout``, ends strictly before ``planned_at``; otherwise return
      ``planned_at``.

    Why:
      A retry that would still be running (or would start) when the schedule
      fires collides with the scheduled run. Waiting for the schedule instead
      keeps at most one attempt in flight.

    Args:
      retry_at: Candidate ad-hoc retry time.
      planned_at: Next occurrence of the recurring schedule.
      timeout: Maximum run time of a single attempt.

    Returns:
      The time that should govern the next refresh.
    """

    try:
        finishes_at = retry_at + timeout
    except OverflowError:
        return planned_at
    if finishes_at < planned_at:
        return retry_at
    return planned_at


def retry_until_success(retry_at: datetime, planned_at: datetime, timeout: timedelta) -> datetime:
    """Always retry; the schedule resumes only after a success."""

    return retry_at


def align_to_schedule(retry_at: datetime, planned_at: datetime, timeout: timedelta) -> datetime:
    """Never retry ad hoc; every attempt waits for the schedule."""

    return planned_at


def whichever_first(retry_at: datetime, planned_at: datetime, timeout: timedelta) -> datetime:
    """Pick the earlier time without looking ahead at the attempt duration."""

    return retry_at if retry_at < planned_at else planned_at


def _absence_rule(strategy: Callable[..., datetime]) -> AlignmentStrategy:
    """Wrap ``strategy`` so a missing input yields the other input."""

    @wraps(strategy)
    def wrapper(
        retry_at: Optional[datetime],
        planned_at: Optional[datetime],
        timeout: timedelta,
    ) -> Optional[datetime]:
        if retry_at is None:
            return planned_at
        if planned_at is None:
            return retry_at
        return strategy(retry_at, planned_at, timeout)

    return wrapper


STRATEGIES: Dict[str, AlignmentStrategy] = {
    "retry_align_planned": _absence_rule(retry_align_planned),
    "retry_until_success": _absence_rule(retry_until_success),
    "align_to_schedule": _absence_rule(align_to_schedule),
    "whichever_first": _absence_rule(whichever_first),
}

DEFAULT_STRATEGY = "retry_align_planned"


def resolve_strategy(strategy: Union[str, AlignmentStrategy, None]) -> AlignmentStrategy:
    """Return the alignment function for ``strategy``.

    What:
      Accept a registry name, a custom callable following the three-argument
      contract, or ``None`` for the default look-ahead rule.

    How:
      Names are looked up in :data:`STRATEGIES`; callables are wrapped with the
      shared absence rule so custom strategies never see ``None``.

    Raises:
      InvalidParameters: When the name is not registered or the value is
        neither a string nor a callable.
    """

    if strategy is None:
        return STRATEGIES[DEFAULT_STRATEGY]
    if isinstance(strategy, str):
        try:
            return STRATEGIES[strategy]
        except KeyError:
            known = ", ".join(sorted(STRATEGIES))
            raise InvalidParameters(f"Unknown alignment strategy: {strategy} (expected one of {known})") from None
    if callable(strategy):
        if strategy in STRATEGIES.values():
            return strategy
        return _absence_rule(strategy)
    raise InvalidParameters(f"Alignment strategy must be a name or a callable, got {type(strategy).__name__}")
