"""
Module: tests/unit/test_strategies.py

What:
    Check the retry alignment strategies and their registry lookup.

Why:
    The strategy decides whether a failed job retries or waits for the
    schedule; a wrong comparison creates overlapping runs.

How:
    Call the registered functions with fixed times, including the absent
    input cases, and resolve names and callables through ``resolve_strategy``.
"""

from datetime import datetime, timedelta

import pytest

from refresh_retry.core.errors import InvalidParameters
from refresh_retry.core.strategies import (
    DEFAULT_STRATEGY,
    STRATEGIES,
    resolve_strategy,
    retry_align_planned,
)

PLANNED = datetime(2025, 1, 1, 2, 0)
TIMEOUT = timedelta(minutes=10)


@pytest.mark.parametrize("name", sorted(STRATEGIES))
def test_absent_input_yields_the_other(name):
    strategy = STRATEGIES[name]
    retry_at = datetime(2025, 1, 1, 1, 0)
    assert strategy(None, PLANNED, TIMEOUT) == PLANNED
    assert strategy(retry_at, None, TIMEOUT) == retry_at
    assert strategy(None, None, TIMEOUT) is None


def test_default_strategy_looks_ahead_by_timeout():
    """
    What:
        The retry wins only when ``retry_at + timeout`` ends strictly before
        the planned run.
    """
    assert retry_align_planned(PLANNED - timedelta(minutes=11), PLANNED, TIMEOUT) == PLANNED - timedelta(minutes=11)
    assert retry_align_planned(PLANNED - timedelta(minutes=10), PLANNED, TIMEOUT) == PLANNED
    assert retry_align_planned(PLANNED + timedelta(minutes=1), PLANNED, TIMEOUT) == PLANNED


def test_registered_alternatives():
    retry_at = PLANNED - timedelta(minutes=5)
    assert STRATEGIES["retry_until_success"](retry_at, PLANNED, TIMEOUT) == retry_at
    assert STRATEGIES["align_to_schedule"](retry_at, PLANNED, TIMEOUT) == PLANNED
    assert STRATEGIES["whichever_first"](retry_at, PLANNED, TIMEOUT) == retry_at
    assert STRATEGIES["whichever_first"](PLANNED + timedelta(minutes=5), PLANNED, TIMEOUT) == PLANNED


def test_resolve_strategy_defaults_and_names():
    assert resolve_strategy(None) is STRATEGIES[DEFAULT_STRATEGY]
    assert resolve_strategy("whichever_first") is STRATEGIES["whichever_first"]
    assert resolve_strategy(STRATEGIES["align_to_schedule"]) is STRATEGIES["align_to_schedule"]


def test_custom_callable_is_shielded_from_none():
    calls = []

    def latest(retry_at, planned_at, timeout):
        calls.append((retry_at, planned_at))
        return max(retry_at, planned_at)

    strategy = resolve_strategy(latest)
    assert strategy(None, PLANNED, TIMEOUT) == PLANNED
    assert calls == []
    assert strategy(PLANNED + TIMEOUT, PLANNED, TIMEOUT) == PLANNED + TIMEOUT
    assert len(calls) == 1


@pytest.mark.parametrize("value", ["sometimes", 42])
def test_resolve_strategy_rejects_unknown(value):
    with pytest.raises(InvalidParameters) as excinfo:
        resolve_strategy(value)
    assert excinfo.value.kind == "InvalidParameters"
