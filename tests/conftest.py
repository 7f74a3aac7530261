"""Pytest configuration shared by the unit and end-to-end suites.

What:
  Establish project import paths and define a fixture that applies a canned
  runtime configuration to every test.

Why:
  The CLI tests execute the real ``refresh_retry`` package. To ensure imports
  resolve to the source tree rather than an installed wheel, the
  ``refresh_retry/src`` directory is prepended to ``sys.path``. The loader
  caches the parsed configuration globally, so the autouse fixture resets it
  around each test.

How:
  Compute the project root relative to this file, inject the source directory
  into ``sys.path`` when available, and define :func:`runtime_config` to point
  ``REFRESH_RETRY_CONFIG_PATH`` at ``tests/data/refresh-retry.yaml``.

Interfaces:
  :data:`CONFIG_PATH`, :func:`runtime_config` (pytest fixture).
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "refresh_retry" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from refresh_retry.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "refresh-retry.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test.

    Sets ``REFRESH_RETRY_CONFIG_PATH`` to the repository fixture and clears the
    runtime configuration cache before and after the test body.
    """

    monkeypatch.setenv("REFRESH_RETRY_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
