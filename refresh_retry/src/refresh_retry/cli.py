"""refresh-retry command-line interface.

What:
  Provide a Typer-based entry point exposing the decision engine to shell
  scripts and operators: ``decide`` computes one decision, ``simulate`` replays
  a policy against the fake job runner, ``occurrences`` previews a schedule,
  ``show-config`` prints the validated configuration.

Why:
  Job runners written in other languages (cron wrappers, CI pipelines) can
  shell out to the engine and read a JSON line back, and operators can try a
  retry policy before deploying it.

How:
  Resolve the policy from the optional configuration file, apply the CLI
  overrides through :mod:`refresh_retry._wiring`, and call the engine. Results
  go to stdout as JSON; validation failures go to stderr as
  ``{"kind": ..., "detail": ...}``.

Interfaces:
  ``app`` (Typer application), ``decide_command``, ``simulate_command``,
  ``occurrences_command``, ``show_config_command``, ``main``.

Invariants & Safety:
  - Exit codes: ``0`` success, ``1`` configuration errors, ``2`` rejected
    decision inputs.
  - The engine never reads the clock; ``decide`` only falls back to the current
    UTC time when ``--now`` is omitted.
"""
from __future__ import annotations

import json
import logging
import sys
from typing import List, Optional

import typer

from ._wiring import merge_policy, parse_instant, render_decision
from .config.loader import ConfigLoadError, dump_runtime_config, get_runtime_config, load_runtime_config
from .core.engine import decide
from .core.errors import RefreshRetryError
from .core.recurrence import occurrences, parse_recurrence
from .simulation import simulate
from .utils.logging import get_logger

app = typer.Typer(help="Refresh and retry decisions for periodic jobs")

LOGGER = logging.getLogger("refresh_retry.cli")


def _fail(error: RefreshRetryError) -> None:
    LOGGER.debug("decision_rejected kind=%s detail=%s", error.kind, error.detail)
    typer.echo(json.dumps(error.to_dict()), err=True)
    raise typer.Exit(code=2)


def _load_config(path: Optional[str]):
    try:
        if path is None:
            return get_runtime_config()
        return load_runtime_config(path, reload=True)
    except ConfigLoadError as exc:
        LOGGER.error("runtime_load_failed: %s", exc)
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


@app.command("decide")
def decide_command(
    event: str = typer.Argument(..., help="Job transition: start, success or failure"),
    now: Optional[str] = typer.Option(None, help="Reference time (ISO-8601); defaults to current UTC time"),
    attempt_no: int = typer.Option(0, "--attempt-no", help="Persisted attempt counter"),
    recurrence: Optional[str] = typer.Option(None, help="RRULE block or cron expression"),
    timeout: Optional[str] = typer.Option(None, help="Attempt timeout (seconds or ISO-8601 duration)"),
    retry_delay: Optional[List[str]] = typer.Option(
        None,
        "--retry-delay",
        help="Delay before each retry, repeat the option per retry",
    ),
    strategy: Optional[str] = typer.Option(None, help="Alignment strategy name"),
    align_deadline: Optional[bool] = typer.Option(
        None,
        "--align-deadline/--no-align-deadline",
        help="Clamp the deadline to the next scheduled occurrence",
    ),
    config: Optional[str] = typer.Option(None, help="Read the policy from this configuration file"),
) -> None:
    """Compute a single decision and print it as JSON."""

    base = _load_config(config).policy if config is not None else None
    try:
        reference = parse_instant(now)
    except ValueError as exc:
        typer.echo(f"Invalid --now value: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    params = merge_policy(
        base,
        recurrence=recurrence,
        timeout=timeout,
        retry_delays=retry_delay,
        strategy=strategy,
        align_deadline=align_deadline,
    )
    try:
        decision = decide(reference, event=event, attempt_no=attempt_no, **params)
    except RefreshRetryError as exc:
        _fail(exc)
    typer.echo(render_decision(decision))


@app.command("simulate")
def simulate_command(
    config: Optional[str] = typer.Option(None, help="Configuration file holding policy and simulation"),
    limit: Optional[int] = typer.Option(None, help="Override the number of simulated clock jumps"),
    seed: Optional[int] = typer.Option(None, help="Override the random seed"),
    json_log: bool = typer.Option(False, "--json-log", help="Also emit one JSON record per decision to stderr"),
) -> None:
    """Replay the configured policy against the fake job runner."""

    runtime = _load_config(config)
    updates = {}
    if limit is not None:
        updates["limit"] = limit
    if seed is not None:
        updates["seed"] = seed
    settings = runtime.simulation.model_copy(update=updates)
    logger = get_logger("refresh_retry.simulation", stream=sys.stderr) if json_log else None
    try:
        policy = runtime.policy.to_policy(anchor=settings.start)
        lines = simulate(policy, settings, logger=logger)
    except RefreshRetryError as exc:
        _fail(exc)
    for line in lines:
        typer.echo(line)


@app.command("occurrences")
def occurrences_command(
    rule: str = typer.Argument(..., help="RRULE block or cron expression"),
    after: Optional[str] = typer.Option(None, help="List occurrences strictly after this ISO-8601 time"),
    count: int = typer.Option(5, min=1, help="Number of occurrences to list"),
) -> None:
    """Print the next occurrences of a schedule, one ISO-8601 time per line."""

    try:
        reference = parse_instant(after)
    except ValueError as exc:
        typer.echo(f"Invalid --after value: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    try:
        recurrence = parse_recurrence(rule, dtstart=reference)
    except RefreshRetryError as exc:
        _fail(exc)
    for instant in occurrences(recurrence, reference, count):
        typer.echo(instant.isoformat())


@app.command("show-config")
def show_config_command(
    config: Optional[str] = typer.Option(None, help="Configuration file to validate and print"),
) -> None:
    """Print the effective configuration, defaults included, as YAML."""

    typer.echo(dump_runtime_config(_load_config(config)), nl=False)


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
