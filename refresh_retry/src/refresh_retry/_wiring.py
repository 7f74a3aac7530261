"""Helper utilities bridging the CLI with the decision engine.

What:
  Convert command-line strings into the values the engine and the simulator
  expect, merge CLI overrides with the configured policy, and render results.

Why:
  Keeping the conversions here keeps the Typer commands short and lets the
  parsing rules be unit tested without invoking the CLI.

How:
  Pure functions only. Durations accept plain seconds (``"300"``) or ISO-8601
  (``"PT5M"``); instants accept ISO-8601 timestamps. Anything else is passed
  through so the engine reports it with its usual error kind.

Interfaces:
  ``parse_instant``, ``parse_duration_arg``, ``merge_policy``,
  ``render_decision``.
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .config.schema import PolicyConfig
from .core.engine import Decision


def parse_instant(text: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp, defaulting to the current UTC time.

    Raises:
      ValueError: When ``text`` is not an ISO-8601 timestamp.
    """

    if text is None:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(text)


def parse_duration_arg(text: Optional[str]) -> Any:
    """Return ``timedelta`` for digit-only strings, otherwise ``text`` as is."""

    if text is None:
        return None
    stripped = text.strip()
    if stripped.isdigit():
        return timedelta(seconds=int(stripped))
    return stripped


def merge_policy(
    base: Optional[PolicyConfig],
    *,
    recurrence: Optional[str] = None,
    timeout: Optional[str] = None,
    retry_delays: Optional[List[str]] = None,
    strategy: Optional[str] = None,
    align_deadline: Optional[bool] = None,
) -> Dict[str, Any]:
    """Build ``decide`` keyword arguments from a config policy plus overrides.

    What:
      Start from ``base`` (or engine defaults when ``None``) and replace every
      field for which the CLI received an explicit value.

    Returns:
      Dictionary with ``recurrence``, ``timeout``, ``retry_delays``,
      ``strategy`` and ``align_deadline`` keys.
    """

    params: Dict[str, Any] = {}
    if base is not None:
        params.update(
            recurrence=base.recurrence,
            timeout=base.timeout,
            retry_delays=list(base.retry_delays),
            strategy=base.strategy,
            align_deadline=base.align_deadline,
        )
    if recurrence is not None:
        params["recurrence"] = recurrence
    if timeout is not None:
        params["timeout"] = parse_duration_arg(timeout)
    if retry_delays:
        params["retry_delays"] = [parse_duration_arg(delay) for delay in retry_delays]
    if strategy is not None:
        params["strategy"] = strategy
    if align_deadline is not None:
        params["align_deadline"] = align_deadline
    return params


def render_decision(decision: Decision) -> str:
    """Serialise ``decision`` as a compact JSON line."""

    return json.dumps(decision.to_dict(), separators=(",", ":"))
