"""Pydantic models describing refresh-retry configuration documents."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.engine import DEFAULT_TIMEOUT, RefreshPolicy
from ..core.errors import RefreshRetryError
from ..core.recurrence import Recurrence, parse_recurrence
from ..core.strategies import DEFAULT_STRATEGY, STRATEGIES


class ValidationError(ValueError):
    """Raised when configuration data does not satisfy the schema."""


class PolicyConfig(BaseModel):
    """Schedule and retry settings of one job."""

    model_config = ConfigDict(extra="forbid")

    recurrence: Optional[str] = None
    timeout: timedelta = DEFAULT_TIMEOUT
    retry_delays: List[Optional[timedelta]] = Field(default_factory=list)
    strategy: str = DEFAULT_STRATEGY
    align_deadline: bool = False

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("timeout must be greater than zero")
        return value

    @field_validator("retry_delays")
    @classmethod
    def _non_negative_delays(cls, value: List[Optional[timedelta]]) -> List[Optional[timedelta]]:
        for index, delay in enumerate(value):
            if delay is not None and delay < timedelta(0):
                raise ValueError(f"retry_delays[{index}] must not be negative")
        return value

    @field_validator("strategy")
    @classmethod
    def _known_strategy(cls, value: str) -> str:
        if value not in STRATEGIES:
            raise ValueError(f"unknown strategy '{value}'")
        return value

    @field_validator("recurrence")
    @classmethod
    def _parsable_recurrence(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                parse_recurrence(value, dtstart=datetime(2000, 1, 1))
            except RefreshRetryError as exc:
                raise ValueError(exc.detail) from exc
        return value

    def build_recurrence(self, *, anchor: Optional[datetime] = None) -> Optional[Recurrence]:
        """Parse :attr:`recurrence` once, anchoring DTSTART-less RRULEs at ``anchor``."""

        if self.recurrence is None:
            return None
        return parse_recurrence(self.recurrence, dtstart=anchor)

    def to_policy(self, *, anchor: Optional[datetime] = None) -> RefreshPolicy:
        """Return the :class:`RefreshPolicy` consumed by the decision engine."""

        return RefreshPolicy(
            recurrence=self.build_recurrence(anchor=anchor),
            timeout=self.timeout,
            retry_delays=tuple(self.retry_delays),
            strategy=self.strategy,
            align_deadline=self.align_deadline,
        )


class SimulationConfig(BaseModel):
    """Parameters of the fake job runner used by ``refresh-retry simulate``."""

    model_config = ConfigDict(extra="forbid")

    start: datetime = datetime(2020, 1, 1)
    limit: int = Field(default=100, gt=0)
    seed: Optional[int] = None
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    min_runtime: timedelta = timedelta(minutes=1)
    max_runtime: timedelta = timedelta(minutes=5)
    disable_after: Optional[timedelta] = None

    @model_validator(mode="after")
    def _validate_runtime(self) -> "SimulationConfig":
        if self.min_runtime <= timedelta(0):
            raise ValidationError("min_runtime must be greater than zero")
        if self.max_runtime < self.min_runtime:
            raise ValidationError("max_runtime must be greater than or equal to min_runtime")
        return self


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``refresh-retry.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
