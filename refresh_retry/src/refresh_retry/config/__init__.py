"""refresh-retry configuration package.

What:
  Provide a cohesive import surface for configuration loading and the Pydantic
  schema classes used by the CLI and the simulator.

Why:
  Callers should not depend on the internal module layout, and must go through
  the schema types so user-provided YAML is validated before it reaches the
  decision engine.

Interfaces:
  - load_runtime_config / get_runtime_config / reset_runtime_config /
    parse_runtime_config / dump_runtime_config.
  - RuntimeConfig / PolicyConfig / SimulationConfig: Pydantic models.
  - ConfigLoadError / RuntimeConfigError / ValidationError: error types.
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    dump_runtime_config,
    get_runtime_config,
    load_runtime_config,
    parse_runtime_config,
    reset_runtime_config,
)
from .schema import PolicyConfig, RuntimeConfig, SimulationConfig, ValidationError

__all__ = [
    "load_runtime_config",
    "get_runtime_config",
    "reset_runtime_config",
    "parse_runtime_config",
    "dump_runtime_config",
    "ConfigLoadError",
    "RuntimeConfigError",
    "PolicyConfig",
    "RuntimeConfig",
    "SimulationConfig",
    "ValidationError",
]
