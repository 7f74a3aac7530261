"""Strict loaders for refresh-retry configuration documents.

What:
  Locate, parse, and validate ``refresh-retry.yaml``, the document holding a
  job's refresh policy and the parameters of the bundled simulator.

Why:
  Operators edit the policy by hand. Centralising parsing guarantees that a
  typo (unknown key, negative delay, unparsable RRULE) is rejected with the
  file path in the message instead of surfacing later as a wrong schedule.

How:
  Resolve candidate file locations from an explicit argument, the
  ``REFRESH_RETRY_CONFIG_PATH`` environment variable, and well-known defaults.
  Parse YAML with :func:`yaml.safe_load`, validate through the Pydantic models
  of :mod:`refresh_retry.config.schema`, and cache the result.

Interfaces:
  - :func:`load_runtime_config` / :func:`get_runtime_config` /
    :func:`reset_runtime_config`: Manage discovery and caching.
  - :func:`parse_runtime_config`: Validate YAML text without touching the
    filesystem.
  - :func:`dump_runtime_config`: Serialise a model back to YAML.

Invariants:
  - All external payloads pass strict Pydantic validation before being
    returned.
  - The cache honours explicit reload requests and the precedence order of
    candidate paths.

Safety/Performance:
  - File and YAML errors are converted into :class:`RuntimeConfigError` with
    path context; nothing fails silently.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from .schema import RuntimeConfig


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures.

    What:
      Represent fatal issues encountered while reading or validating
      configuration documents.

    Why:
      Grouping failures under a single type lets the CLI report user input
      mistakes separately from decision validation errors.
    """


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``refresh-retry.yaml`` cannot be loaded or validated."""


_CONFIG_ENV = "REFRESH_RETRY_CONFIG_PATH"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("refresh-retry.yaml"),
    Path("/etc/refresh-retry/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Path, RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration file locations in priority order.

    What:
      Produce the ordered, deduplicated list of paths that should be inspected.

    How:
      Check the explicit argument, then ``REFRESH_RETRY_CONFIG_PATH``, then the
      default locations, expanding ``~`` along the way.

    Args:
      path: Explicit path requested by the caller, or ``None``.

    Yields:
      Candidate paths ordered from most specific to least specific.
    """

    seen: set[Path] = set()
    if path is not None:
        candidate = path.expanduser()
        seen.add(candidate)
        yield candidate
    env_path = os.environ.get(_CONFIG_ENV)
    if env_path:
        candidate = Path(env_path).expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate
    for default in _DEFAULT_LOCATIONS:
        candidate = default.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def parse_runtime_config(text: str, source: str = "<string>") -> RuntimeConfig:
    """Validate YAML ``text`` into a :class:`RuntimeConfig`.

    What:
      Decode the YAML document, ensure it is a mapping (an empty document
      yields the defaults), and validate it against the schema.

    Args:
      text: Raw configuration contents.
      source: Label used in error messages, usually the file path.

    Returns:
      The validated configuration.

    Raises:
      RuntimeConfigError: If the YAML is malformed, not a mapping, or violates
        the schema.
    """

    try:
        payload: Any = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError(f"{source} must contain a mapping at the top-level")
    try:
        return RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid configuration in {source}: {exc}") from exc


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    try:
        text = path.read_text()
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    return parse_runtime_config(text, str(path))


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Locate the configuration using the precedence chain, parse it, and return
      a validated :class:`RuntimeConfig`.

    Why:
      The CLI commands share one configuration; caching avoids repeated disk IO
      while ``reload`` allows deterministic refreshes in tests.

    Args:
      path: Optional explicit location of the configuration file.
      reload: When ``True`` forces a fresh load bypassing the cache.

    Returns:
      The validated runtime configuration.

    Raises:
      RuntimeConfigError: If no suitable file can be located or validated.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    searched: list[str] = []
    for candidate in _candidate_paths(requested_path):
        # An explicit path never falls back to the other locations.
        if not candidate.exists() and candidate != requested_path:
            searched.append(str(candidate))
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    raise RuntimeConfigError(
        f"Unable to locate refresh-retry.yaml (searched: {', '.join(searched) or '<none>'})"
    )


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None


def dump_runtime_config(config: RuntimeConfig) -> str:
    """Serialise ``config`` to YAML with ISO-8601 durations and timestamps."""

    return yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False)
