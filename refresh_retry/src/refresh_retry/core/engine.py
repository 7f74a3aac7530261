"""refresh_retry.core.engine

What:
  Compute the next decision point of a periodic background job: when it should
  next start, when the running attempt times out, and whether the retry budget
  is used up. One call per job transition (``start``, ``success``,
  ``failure``); the caller persists the returned fields and triggers the work.

Why:
  Job runners need retries that cooperate with the recurring schedule instead
  of colliding with it. Keeping the decision pure (explicit ``now``, explicit
  attempt state, no clock reads, no storage) makes it deterministic, safe to
  call from any worker, and trivial to replay in tests and simulations.

How:
  - Validate every input up front and raise a typed
    :class:`~refresh_retry.core.errors.RefreshRetryError` before computing
    anything.
  - ``start`` opens a deadline of ``now + timeout`` and pre-computes where the
    job should resume should this attempt time out silently.
  - ``success`` resets the attempt counter and follows the recurrence.
  - ``failure`` consumes the next retry delay and reconciles the retry time
    with the next occurrence through the selected alignment strategy.

Interfaces:
  - :class:`Event`, :class:`Decision`, :class:`RefreshPolicy`.
  - :func:`decide` (typed keyword API) and :func:`decide_from_mapping`
    (parameter mapping from configuration or CLI payloads).

Invariants & Safety:
  - Every non-null time in a :class:`Decision` is ``>= now``.
  - ``deadline_at`` is only set for ``start`` and equals ``now + timeout``
    unless deadline alignment is requested.
  - ``retries_exhausted`` implies ``refresh_at is None``.
  - ``success`` yields ``attempt_no == 0``; ``start`` increments it;
    ``failure`` never changes it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as _PydanticValidationError

from .errors import (
    InvalidAttemptNumber,
    InvalidEvent,
    InvalidParameters,
    InvalidRecurrence,
    InvalidRetryDelays,
    InvalidTimeout,
)
from .recurrence import Recurrence, parse_recurrence
from .strategies import AlignmentStrategy, resolve_strategy

LOGGER = logging.getLogger("refresh_retry.engine")

DEFAULT_TIMEOUT = timedelta(minutes=10)

_DURATION = TypeAdapter(timedelta)


class Event(str, Enum):
    """Job transitions accepted by :func:`decide`."""

    START = "start"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Decision:
    """Outcome of a single :func:`decide` call.

    What:
      The three fields a job runner persists (``refresh_at``, ``deadline_at``,
      ``attempt_no``) plus the informational ``scheduled_at`` and
      ``retries_exhausted`` flags.

    Why:
      Runners that give up after exhaustion still need to know when the
      schedule fires again, hence ``scheduled_at`` is reported on every path.

    Attributes:
      event: Transition that produced this decision.
      attempt_no: Attempt counter to persist.
      refresh_at: When the runner should next invoke ``start``.
      deadline_at: When the in-flight attempt counts as timed out.
      scheduled_at: Next recurrence occurrence strictly after ``now``.
      retries_exhausted: ``True`` when no further retry will be scheduled.
    """

    event: Event
    attempt_no: int
    refresh_at: Optional[datetime] = None
    deadline_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    retries_exhausted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-ready mapping with ISO-8601 timestamps."""

        def _iso(value: Optional[datetime]) -> Optional[str]:
            return None if value is None else value.isoformat()

        return {
            "event": self.event.value,
            "attempt_no": self.attempt_no,
            "refresh_at": _iso(self.refresh_at),
            "deadline_at": _iso(self.deadline_at),
            "scheduled_at": _iso(self.scheduled_at),
            "retries_exhausted": self.retries_exhausted,
        }


def _coerce_duration(value: Any) -> timedelta:
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not a duration")
    if isinstance(value, timedelta):
        return value
    return _DURATION.validate_python(value)


def _validate_recurrence(recurrence: Any, now: datetime) -> Optional[Recurrence]:
    if recurrence is None:
        return None
    if isinstance(recurrence, str):
        return parse_recurrence(recurrence, dtstart=now)
    if isinstance(recurrence, Recurrence):
        return recurrence
    raise InvalidRecurrence(
        f"recurrence must be a valid RRULE/cron expression or a Recurrence (or null), got {type(recurrence).__name__}"
    )


def _validate_timeout(timeout: Any) -> timedelta:
    if timeout is None:
        return DEFAULT_TIMEOUT
    try:
        value = _coerce_duration(timeout)
    except (ValueError, TypeError, _PydanticValidationError) as exc:
        raise InvalidTimeout(f"timeout must be a duration greater than zero: {timeout!r}") from exc
    if value <= timedelta(0):
        raise InvalidTimeout(f"timeout must be a duration greater than zero: {timeout!r}")
    return value


def _validate_attempt_no(attempt_no: Any) -> int:
    if isinstance(attempt_no, bool) or not isinstance(attempt_no, int) or attempt_no < 0:
        raise InvalidAttemptNumber(f"attempt_no must be a non-negative integer: {attempt_no!r}")
    return attempt_no


def _validate_retry_delays(retry_delays: Any) -> Tuple[timedelta, ...]:
    if retry_delays is None:
        return ()
    if not isinstance(retry_delays, (list, tuple)):
        raise InvalidRetryDelays(
            f"retry_delays must be a list (or null) of durations, got {type(retry_delays).__name__}"
        )
    delays = []
    for index, entry in enumerate(retry_delays):
        if entry is None:
            delays.append(timedelta(0))
            continue
        try:
            delay = _coerce_duration(entry)
        except (ValueError, TypeError, _PydanticValidationError) as exc:
            raise InvalidRetryDelays(f"retry_delays[{index}] is not a duration: {entry!r}") from exc
        if delay < timedelta(0):
            raise InvalidRetryDelays(f"retry_delays[{index}] must not be negative: {entry!r}")
        delays.append(delay)
    return tuple(delays)


def _validate_event(event: Any) -> Event:
    try:
        return Event(event)
    except ValueError:
        raise InvalidEvent(f"Invalid event: {event!r} (expected start, success or failure)") from None


def _next_occurrence(rule: Optional[Recurrence], instant: datetime) -> Optional[datetime]:
    if rule is None:
        return None
    try:
        try:
            found = rule.next_after(instant)
        except OverflowError:
            # No occurrence before datetime.max.
            return None
        if found is not None and found <= instant:
            raise InvalidRecurrence(f"{rule!r} returned {found.isoformat()}, not after {instant.isoformat()}")
    except (TypeError, ValueError) as exc:
        if isinstance(exc, InvalidRecurrence):
            raise
        raise InvalidRecurrence(f"recurrence could not be evaluated at {instant.isoformat()}: {exc}") from exc
    return found


def _retry_slot(base: datetime, delays: Sequence[timedelta], retry_no: int) -> Optional[datetime]:
    if retry_no >= len(delays):
        return None
    if retry_no < 0:
        return base
    try:
        return base + delays[retry_no]
    except OverflowError:
        raise InvalidRetryDelays(
            f"retry_delays[{retry_no}] moves the retry past {datetime.max.isoformat()}: {delays[retry_no]!r}"
        ) from None


def _align(
    align: AlignmentStrategy,
    retry_at: Optional[datetime],
    planned_at: Optional[datetime],
    timeout: timedelta,
    now: datetime,
) -> Optional[datetime]:
    chosen = align(retry_at, planned_at, timeout)
    # Strategies pick one of their inputs; both are already >= now.
    if chosen not in (retry_at, planned_at) or (chosen is not None and chosen < now):
        name = getattr(align, "__name__", repr(align))
        raise InvalidParameters(
            f"Alignment strategy {name} returned {chosen!r}, expected retry_at {retry_at!r} or planned_at {planned_at!r}"
        )
    return chosen


def _on_start(
    now: datetime,
    rule: Optional[Recurrence],
    timeout: timedelta,
    delays: Sequence[timedelta],
    attempt_no: int,
    align: AlignmentStrategy,
    scheduled_at: Optional[datetime],
    align_deadline: bool,
) -> Decision:
    try:
        deadline_at = now + timeout
    except OverflowError:
        raise InvalidTimeout(f"timeout moves the deadline past {datetime.max.isoformat()}: {timeout!r}") from None
    clamped = align_deadline and scheduled_at is not None and scheduled_at < deadline_at
    if clamped:
        deadline_at = scheduled_at
    exhausted = attempt_no - 1 >= len(delays)
    refresh_at = None
    if not exhausted:
        # Where to resume if this attempt times out without reporting back.
        planned_at = scheduled_at if clamped else _next_occurrence(rule, deadline_at)
        retry_at = _retry_slot(deadline_at, delays, attempt_no)
        refresh_at = _align(align, retry_at, planned_at, timeout, now)
    return Decision(
        event=Event.START,
        attempt_no=attempt_no + 1,
        refresh_at=refresh_at,
        deadline_at=deadline_at,
        scheduled_at=scheduled_at,
        retries_exhausted=exhausted,
    )


def _on_failure(
    now: datetime,
    timeout: timedelta,
    delays: Sequence[timedelta],
    attempt_no: int,
    align: AlignmentStrategy,
    scheduled_at: Optional[datetime],
) -> Decision:
    retry_no = attempt_no - 1
    if retry_no >= len(delays):
        return Decision(
            event=Event.FAILURE,
            attempt_no=attempt_no,
            scheduled_at=scheduled_at,
            retries_exhausted=True,
        )
    retry_at = _retry_slot(now, delays, retry_no)
    return Decision(
        event=Event.FAILURE,
        attempt_no=attempt_no,
        refresh_at=_align(align, retry_at, scheduled_at, timeout, now),
        scheduled_at=scheduled_at,
    )


def decide(
    now: datetime,
    *,
    event: Union[Event, str],
    recurrence: Union[Recurrence, str, None] = None,
    timeout: Union[timedelta, str, None] = DEFAULT_TIMEOUT,
    retry_delays: Optional[Sequence[Union[timedelta, str, None]]] = (),
    attempt_no: int = 0,
    strategy: Union[str, AlignmentStrategy, None] = None,
    align_deadline: bool = False,
    callback: Optional[Callable[[Decision], Any]] = None,
) -> Decision:
    """Compute the next refresh decision for a job transition.

    What:
      Validate the inputs, then apply the ``start``/``success``/``failure``
      rules to produce a :class:`Decision`.

    Why:
      This is the single entry point job runners call on every transition; it
      never reads the system clock nor keeps state between calls.

    How:
      Validation runs in a fixed order (recurrence, timeout, attempt number,
      retry delays, event, strategy, deadline alignment) so the same invalid
      input always yields the same error kind. ``scheduled_at`` is evaluated
      during validation so a recurrence that cannot be queried is reported
      before any decision. Durations that push a time past
      ``datetime.max`` are reported as the input that caused them.

    Args:
      now: Reference time of the transition.
      event: ``start``, ``success`` or ``failure``.
      recurrence: Recurrence object, RRULE/cron text, or ``None``.
      timeout: Maximum run time of one attempt; ``None`` means 10 minutes.
      retry_delays: Delay before each retry; ``None`` entries retry at once.
      attempt_no: Persisted attempt counter.
      strategy: Alignment strategy name or callable; defaults to
        ``retry_align_planned``.
      align_deadline: Clamp ``deadline_at`` to the next occurrence when it
        comes first.
      callback: Optional continuation receiving the decision.

    Returns:
      The decision to persist.

    Raises:
      RefreshRetryError: One of its subclasses when an input is invalid.
    """

    if not isinstance(now, datetime):
        raise InvalidParameters(f"now must be a datetime, got {type(now).__name__}")
    rule = _validate_recurrence(recurrence, now)
    timeout = _validate_timeout(timeout)
    attempt_no = _validate_attempt_no(attempt_no)
    delays = _validate_retry_delays(retry_delays)
    event = _validate_event(event)
    align = resolve_strategy(strategy)
    if not isinstance(align_deadline, bool):
        raise InvalidParameters(f"align_deadline must be a boolean, got {align_deadline!r}")
    scheduled_at = _next_occurrence(rule, now)

    if event is Event.START:
        decision = _on_start(now, rule, timeout, delays, attempt_no, align, scheduled_at, align_deadline)
    elif event is Event.SUCCESS:
        decision = Decision(
            event=Event.SUCCESS,
            attempt_no=0,
            refresh_at=scheduled_at,
            scheduled_at=scheduled_at,
        )
    else:
        decision = _on_failure(now, timeout, delays, attempt_no, align, scheduled_at)

    LOGGER.debug(
        "decision event=%s attempt_no=%s refresh_at=%s deadline_at=%s exhausted=%s",
        decision.event.value,
        decision.attempt_no,
        decision.refresh_at,
        decision.deadline_at,
        decision.retries_exhausted,
    )
    if callback is not None:
        callback(decision)
    return decision


class DecisionRequest(BaseModel):
    """Parameter mapping accepted by :func:`decide_from_mapping`.

    Field values are passed through untouched; :func:`decide` performs the
    per-field validation so error kinds stay identical across entry points.
    Only the set of keys is checked here, plus ``align_deadline`` which is
    parsed as a boolean (``"false"``, ``"no"`` and ``"0"`` mean ``False``).
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    now: Any = None
    event: Any = None
    recurrence: Any = None
    timeout: Any = None
    retry_delays: Any = None
    attempt_no: Any = 0
    strategy: Any = None
    align_deadline: Optional[bool] = False
    callback: Any = None


def decide_from_mapping(params: Mapping[str, Any]) -> Decision:
    """Run :func:`decide` on a loosely-typed parameter mapping.

    Raises:
      InvalidParameters: When ``params`` is not a mapping or carries unknown
        keys (listed in the detail string), or when ``align_deadline`` is
        not a boolean.
    """

    if not isinstance(params, Mapping):
        raise InvalidParameters(f"parameters must be a mapping, got {type(params).__name__}")
    try:
        request = DecisionRequest.model_validate(dict(params))
    except _PydanticValidationError as exc:
        unknown = [str(error["loc"][0]) for error in exc.errors() if error["type"] == "extra_forbidden"]
        raise InvalidParameters(f"Invalid parameters: {', '.join(unknown) or exc}") from None
    return decide(
        request.now,
        event=request.event,
        recurrence=request.recurrence,
        timeout=request.timeout,
        retry_delays=request.retry_delays,
        attempt_no=request.attempt_no,
        strategy=request.strategy,
        align_deadline=bool(request.align_deadline),
        callback=request.callback,
    )


@dataclass(frozen=True)
class RefreshPolicy:
    """Reusable bundle of schedule and retry settings.

    Job runners usually keep one policy per job; :meth:`decide` forwards the
    stored settings together with the per-call state.
    """

    recurrence: Union[Recurrence, str, None] = None
    timeout: timedelta = DEFAULT_TIMEOUT
    retry_delays: Tuple[Optional[timedelta], ...] = field(default_factory=tuple)
    strategy: Union[str, AlignmentStrategy, None] = None
    align_deadline: bool = False

    def decide(
        self,
        now: datetime,
        event: Union[Event, str],
        attempt_no: int = 0,
    ) -> Decision:
        return decide(
            now,
            event=event,
            recurrence=self.recurrence,
            timeout=self.timeout,
            retry_delays=self.retry_delays,
            attempt_no=attempt_no,
            strategy=self.strategy,
            align_deadline=self.align_deadline,
        )
