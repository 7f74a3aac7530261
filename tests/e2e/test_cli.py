"""End-to-end tests asserting CLI commands execute successfully.

What:
  Launch the ``refresh_retry.cli`` module through ``python -m`` and validate
  observable behaviour of ``decide`` and ``simulate`` with the fixture
  configuration.

Why:
  These tests ensure the entry point wiring and environment bootstrapping
  work when invoked the way cron wrappers and operators invoke them.

How:
  Construct subprocess invocations with a controlled ``PYTHONPATH`` pointing
  to the in-repo source tree and assert on return codes and stdout/stderr.

Interfaces:
  ``test_cli_decide``, ``test_cli_decide_rejects_event``,
  ``test_cli_simulate_week``.

Invariants & Safety:
  - Tests run against the local source tree to avoid depending on installed
    packages.
"""

import json
import os
import pathlib
import subprocess
import sys


PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
CONFIG_PATH = PROJECT_ROOT / "tests" / "data" / "refresh-retry.yaml"


def _run_cli(*args: str) -> subprocess.CompletedProcess:
    """Execute ``python -m refresh_retry.cli`` with the provided arguments.

    Clones the current environment while overriding ``PYTHONPATH`` to point at
    the repository source tree and captures stdout/stderr for assertions.
    """

    cmd = [sys.executable, "-m", "refresh_retry.cli", *args]
    env = dict(os.environ)
    env["PYTHONPATH"] = f"{PROJECT_ROOT / 'refresh_retry' / 'src'}{os.pathsep}{env.get('PYTHONPATH', '')}"
    return subprocess.run(cmd, text=True, capture_output=True, cwd=PROJECT_ROOT, env=env)


def test_cli_decide() -> None:
    """A retry chain driven from the shell hands the counter back and forth."""

    failure = _run_cli(
        "decide",
        "failure",
        "--now",
        "2025-01-01T00:01:00",
        "--attempt-no",
        "1",
        "--retry-delay",
        "0",
    )
    assert failure.returncode == 0
    decision = json.loads(failure.stdout)
    assert decision["refresh_at"] == "2025-01-01T00:01:00"

    start = _run_cli(
        "decide",
        "start",
        "--now",
        decision["refresh_at"],
        "--attempt-no",
        str(decision["attempt_no"]),
        "--retry-delay",
        "0",
    )
    assert start.returncode == 0
    assert json.loads(start.stdout)["attempt_no"] == 2


def test_cli_decide_rejects_event() -> None:
    result = _run_cli("decide", "restart")
    assert result.returncode == 2
    assert json.loads(result.stderr)["kind"] == "InvalidEvent"


def test_cli_simulate_week() -> None:
    """
    What:
      Replay the fixture policy: twice-daily refreshes, three retries, a 5%
      success rate and a one-week cut-off.

    Why:
      Exercises configuration discovery, the simulator and the engine in one
      process, the way an operator previews a policy.
    """

    result = _run_cli("simulate", "--config", str(CONFIG_PATH))
    assert result.returncode == 0
    lines = result.stdout.splitlines()
    assert lines[0] == "[1][2020-01-01 00:00] Refresh started"
    assert any("Retry started #1" in line for line in lines)
