"""
Module: tests/unit/test_recurrence.py

What:
    Validate the RRULE, cron and fixed-interval recurrence adapters.

Why:
    The engine trusts ``next_after`` to return a value strictly after the
    queried instant; an inclusive answer would schedule a job at ``now`` and
    loop forever.

How:
    Query each adapter at and around known occurrences, mix naive and aware
    datetimes, and feed malformed text to ``parse_recurrence``.
"""

from datetime import datetime, timedelta, timezone

import pytest

from refresh_retry.core.errors import InvalidRecurrence
from refresh_retry.core.recurrence import (
    CronRecurrence,
    IntervalRecurrence,
    Recurrence,
    RRuleRecurrence,
    every,
    occurrences,
    parse_recurrence,
)

T0 = datetime(2025, 1, 1)
TWICE_DAILY = "RRULE:FREQ=DAILY;BYHOUR=6,16;BYMINUTE=0;BYSECOND=0"


def test_rrule_next_after_is_strict():
    rule = RRuleRecurrence("DTSTART:20250101T000000\nRRULE:FREQ=HOURLY;INTERVAL=2")
    assert rule.next_after(T0 - timedelta(days=1)) == T0
    assert rule.next_after(T0) == T0 + timedelta(hours=2)
    assert rule.next_after(T0 + timedelta(hours=1)) == T0 + timedelta(hours=2)


def test_rrule_without_dtstart_uses_anchor():
    rule = parse_recurrence(TWICE_DAILY, dtstart=T0)
    assert isinstance(rule, RRuleRecurrence)
    assert rule.next_after(T0) == T0.replace(hour=6)
    assert rule.next_after(T0.replace(hour=6)) == T0.replace(hour=16)
    assert rule.next_after(T0.replace(hour=16)) == datetime(2025, 1, 2, 6)


def test_bare_freq_line_is_an_rrule():
    rule = parse_recurrence("FREQ=HOURLY;INTERVAL=2", dtstart=T0)
    assert rule.next_after(T0) == T0 + timedelta(hours=2)


def test_anchor_microseconds_are_dropped():
    rule = parse_recurrence("FREQ=MINUTELY", dtstart=T0 + timedelta(microseconds=500))
    assert rule.next_after(T0) == T0 + timedelta(minutes=1)


def test_finite_rrule_runs_out():
    rule = parse_recurrence("DTSTART:20250101T000000\nRRULE:FREQ=HOURLY;COUNT=2")
    assert rule.next_after(T0) == T0 + timedelta(hours=1)
    assert rule.next_after(T0 + timedelta(hours=1)) is None


def test_naive_rrule_with_aware_instant():
    rule = RRuleRecurrence("DTSTART:20250101T000000\nRRULE:FREQ=HOURLY;INTERVAL=2")
    instant = datetime(2025, 1, 1, 1, 0, tzinfo=timezone.utc)
    assert rule.next_after(instant) == datetime(2025, 1, 1, 2, 0, tzinfo=timezone.utc)


def test_aware_rrule_with_naive_instant():
    rule = RRuleRecurrence("DTSTART:20250101T000000Z\nRRULE:FREQ=HOURLY;INTERVAL=2")
    found = rule.next_after(datetime(2025, 1, 1, 1, 0))
    assert found == datetime(2025, 1, 1, 2, 0)
    assert found.tzinfo is None


def test_cron_adapter():
    rule = parse_recurrence("0 */2 * * *")
    assert isinstance(rule, CronRecurrence)
    assert rule.next_after(T0) == T0 + timedelta(hours=2)
    assert rule.next_after(T0 + timedelta(minutes=30)) == T0 + timedelta(hours=2)


def test_cron_keeps_instant_timezone():
    rule = CronRecurrence("30 6 * * *")
    found = rule.next_after(datetime(2025, 1, 1, tzinfo=timezone.utc))
    assert found == datetime(2025, 1, 1, 6, 30, tzinfo=timezone.utc)


def test_interval_recurrence():
    """
    What:
        Fixed-rate schedule anchored at ``T0``.

    How:
        Instants before the anchor resolve to the anchor; an exact occurrence
        resolves to the following one.
    """
    rule = every(timedelta(hours=2), start=T0)
    assert isinstance(rule, IntervalRecurrence)
    assert rule.next_after(T0 - timedelta(minutes=1)) == T0
    assert rule.next_after(T0) == T0 + timedelta(hours=2)
    assert rule.next_after(T0 + timedelta(hours=3)) == T0 + timedelta(hours=4)


def test_adapters_satisfy_protocol():
    assert isinstance(every(timedelta(hours=1), start=T0), Recurrence)
    assert isinstance(parse_recurrence("0 * * * *"), Recurrence)
    assert isinstance(parse_recurrence(TWICE_DAILY, dtstart=T0), Recurrence)


def test_occurrences_lists_consecutive_values():
    assert occurrences(every(timedelta(hours=2), start=T0), T0, 3) == [
        T0 + timedelta(hours=2),
        T0 + timedelta(hours=4),
        T0 + timedelta(hours=6),
    ]
    finite = parse_recurrence("DTSTART:20250101T000000\nRRULE:FREQ=HOURLY;COUNT=3")
    assert occurrences(finite, T0, 10) == [T0 + timedelta(hours=1), T0 + timedelta(hours=2)]


@pytest.mark.parametrize(
    "text",
    ["", "   ", "not a rule", "RRULE:FREQ=SOMETIMES", "FREQ=DAILY;BYDAY=XX", "61 * * * *"],
)
def test_malformed_text_is_rejected(text):
    with pytest.raises(InvalidRecurrence):
        parse_recurrence(text, dtstart=T0)


def test_interval_must_be_positive():
    with pytest.raises(InvalidRecurrence):
        every(timedelta(0), start=T0)


def test_floating_until_with_aware_anchor():
    """
    What:
        ``UNTIL`` without ``Z`` still parses when the anchor is aware, and
        ``UNTIL=...Z`` still parses when the anchor is naive.

    How:
        Both rules end at 05:00 UTC whatever the awareness of the clock.
    """
    aware_t0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
    floating = parse_recurrence("RRULE:FREQ=HOURLY;UNTIL=20250101T050000", dtstart=aware_t0)
    assert floating.next_after(aware_t0) == datetime(2025, 1, 1, 1, tzinfo=timezone.utc)
    assert floating.next_after(datetime(2025, 1, 1, 5, tzinfo=timezone.utc)) is None

    utc = parse_recurrence("RRULE:FREQ=HOURLY;UNTIL=20250101T050000Z", dtstart=T0)
    assert utc.next_after(T0) == datetime(2025, 1, 1, 1)
    assert utc.next_after(datetime(2025, 1, 1, 5)) is None
