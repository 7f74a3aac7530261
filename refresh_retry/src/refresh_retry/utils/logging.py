"""refresh-retry logging helpers with deterministic JSON emission.

What:
  Offer a tiny facade over Python streams so the CLI and the simulator can
  emit JSON log lines with consistent fields.

Why:
  Job runners grep and index decision logs. A structured, single-line layout
  keeps parsing trivial and lets tests assert on individual fields.

How:
  Provide a :class:`JsonLogger` dataclass bound to a target stream and a
  component label. ``extra`` values are converted to JSON-friendly primitives
  (datetimes and durations become ISO-8601 strings) before being serialised
  with ``json.dump``.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every payload includes ``ts``, ``lvl``, ``msg`` and ``component``.
  - Streams are flushed after every write.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional


def _jsonable(value: Any) -> Any:
    """Convert ``value`` into something :func:`json.dump` accepts."""

    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


@dataclass
class JsonLogger:
    """Structured JSON logger.

    What:
      Emit single-line JSON entries that include a timestamp, severity, a
      component tag, and optional supplemental fields.

    How:
      Stores the destination stream and component label, then exposes helper
      methods (:meth:`log`, :meth:`info`, :meth:`warning`, :meth:`error`) that
      merge the canonical payload with converted extras.

    Attributes:
      stream: Destination stream, ``stdout`` by default.
      component: Label written to every entry.
      clock: Optional callable returning the timestamp to log; simulations
        inject their virtual clock here.
    """

    stream: Any = field(default_factory=lambda: sys.stdout)
    component: str = "refresh_retry"
    clock: Optional[Any] = None

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry.

        Args:
          level: Human-readable severity (e.g., ``"info"`` or ``"error"``).
          message: Core log message.
          extra: Optional context dictionary merged into the payload.
        """

        now = self.clock() if self.clock is not None else datetime.now(timezone.utc)
        payload = {
            "ts": now.isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(_jsonable(extra))
        json.dump(payload, self.stream, separators=(",", ":"))
        self.stream.write("\n")
        self.stream.flush()

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error entry, e.g. a rejected decision input."""

        self.log("ERROR", message, extra=kwargs)


def get_logger(component: str, *, stream: Any = None) -> JsonLogger:
    """Construct a :class:`JsonLogger` for the requested component.

    Args:
      component: Logical subsystem name to include in log payloads.
      stream: Optional destination; defaults to ``stdout``.

    Returns:
      Configured :class:`JsonLogger` instance.
    """

    if stream is None:
        return JsonLogger(component=component)
    return JsonLogger(stream=stream, component=component)
