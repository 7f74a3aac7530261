"""Deterministic job-runner simulator driving the decision engine.

What:
  Fake the job runner that surrounds :func:`refresh_retry.core.engine.decide`:
  a virtual clock, an in-memory record of the persisted fields, and jobs that
  report success or failure after a random runtime. The run is rendered as
  numbered, timestamped lines.

Why:
  Retry policies are easier to judge over a week of simulated refreshes than
  from single decisions. The simulator also exercises the exact persistence
  contract a real runner has to follow (store ``refresh_at`` and
  ``attempt_no``, start again at ``refresh_at``, wait for ``scheduled_at``
  once retries are exhausted).

How:
  Each loop iteration jumps the virtual clock to the earliest pending time
  (a job returning or ``refresh_at``), delivers the job outcome first, then
  starts a new attempt when ``refresh_at`` is due. Jobs that outlive their
  ``deadline_at`` report a failure at the deadline. A seeded
  :class:`random.Random` keeps every run reproducible.

Interfaces:
  :class:`JobSimulator`, :func:`simulate`.

Invariants & Safety:
  - No wall-clock reads and no IO besides the optional structured logger.
  - Pending jobs are always processed in ``return_at`` order.
"""
from __future__ import annotations

import bisect
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .config.schema import SimulationConfig
from .core.engine import Decision, Event, RefreshPolicy
from .utils.logging import JsonLogger

OutcomeFn = Callable[[random.Random, int], Event]


@dataclass(order=True)
class _PendingJob:
    return_at: datetime
    event: Event = field(compare=False)


@dataclass
class _JobState:
    """The fields a real runner would persist between calls."""

    refresh_at: Optional[datetime] = None
    attempt_no: int = 0
    latest_success_at: Optional[datetime] = None
    deadline_at: Optional[datetime] = None


class JobSimulator:
    """Replay a job's life cycle under a :class:`RefreshPolicy`.

    Args:
      policy: Policy passed to the decision engine on every transition.
      config: Simulation parameters (start time, iteration limit, seed, ...).
      outcome: Optional ``(rng, attempt_no) -> Event`` deciding how each
        attempt ends; defaults to a draw against ``config.success_rate``.
      logger: Optional structured logger receiving one record per decision.
    """

    def __init__(
        self,
        policy: RefreshPolicy,
        config: SimulationConfig,
        *,
        outcome: Optional[OutcomeFn] = None,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self.policy = policy
        self.config = config
        self.now = config.start
        self.state = _JobState()
        self.lines: List[str] = []
        self._jobs: List[_PendingJob] = []
        self._rng = random.Random(config.seed)
        self._outcome = outcome or self._draw_outcome
        self._logger = logger
        if logger is not None and logger.clock is None:
            logger.clock = lambda: self.now

    def _draw_outcome(self, rng: random.Random, attempt_no: int) -> Event:
        return Event.SUCCESS if rng.random() < self.config.success_rate else Event.FAILURE

    def info(self, message: str) -> None:
        self.lines.append(f"[{len(self.lines) + 1}][{self.now:%Y-%m-%d %H:%M}] {message}")

    def _runtime(self) -> timedelta:
        low = int(self.config.min_runtime.total_seconds())
        high = int(self.config.max_runtime.total_seconds())
        return timedelta(seconds=self._rng.randint(low, high))

    def _announce(self, event: Event) -> None:
        if event is Event.START:
            if self.state.attempt_no == 0:
                self.info("Refresh started")
            else:
                self.info(f"Retry started #{self.state.attempt_no}")
        elif event is Event.SUCCESS:
            self.info("Success")
        else:
            self.info(f"Failure ({self.state.attempt_no})")

    def _persist(self, decision: Decision) -> None:
        if decision.retries_exhausted:
            self.info("No more retries. Wait until next planned refresh.")
            self.state.refresh_at = decision.scheduled_at
            self.state.attempt_no = 0
        else:
            self.state.refresh_at = decision.refresh_at
            self.state.attempt_no = decision.attempt_no
        self.state.deadline_at = decision.deadline_at

    def _launch(self) -> None:
        if self.state.latest_success_at is None:
            self.state.latest_success_at = self.now
        return_at = self.now + self._runtime()
        event = self._outcome(self._rng, self.state.attempt_no)
        deadline_at = self.state.deadline_at
        if deadline_at is not None and return_at > deadline_at:
            return_at, event = deadline_at, Event.FAILURE
        bisect.insort(self._jobs, _PendingJob(return_at=return_at, event=event))

    def _turned_off(self) -> None:
        window = self.config.disable_after
        latest = self.state.latest_success_at
        if window is None or latest is None or self.now - latest < window:
            return
        self.state.refresh_at = None
        self.info(f"No successful refresh in over {window}")
        self.info("Refresh disabled until the job settings are reviewed")

    def tick(self, event: Event) -> None:
        """Deliver ``event`` to the engine at the current virtual time."""

        self._announce(event)
        decision = self.policy.decide(self.now, event, self.state.attempt_no)
        if self._logger is not None:
            self._logger.info("decision", **decision.to_dict())
        self._persist(decision)
        if event is Event.START:
            self._launch()
        elif event is Event.SUCCESS:
            self.state.latest_success_at = self.now
        else:
            self._turned_off()

    def run(self) -> List[str]:
        """Simulate up to ``config.limit`` clock jumps and return the lines."""

        self.tick(Event.START)
        for _ in range(self.config.limit):
            pending = [job.return_at for job in self._jobs]
            if self.state.refresh_at is not None:
                pending.append(self.state.refresh_at)
            if not pending:
                self.info("The end. Bye!")
                break
            self.now = min(pending)
            if self._jobs and self.now >= self._jobs[0].return_at:
                self.tick(self._jobs.pop(0).event)
            if self.state.refresh_at is not None and self.now >= self.state.refresh_at:
                self.tick(Event.START)
        return self.lines


def simulate(
    policy: RefreshPolicy,
    config: SimulationConfig,
    *,
    outcome: Optional[OutcomeFn] = None,
    logger: Optional[JsonLogger] = None,
) -> List[str]:
    """Run a :class:`JobSimulator` and return its numbered log lines."""

    return JobSimulator(policy, config, outcome=outcome, logger=logger).run()
