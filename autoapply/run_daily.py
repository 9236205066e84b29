"""
Scheduled entry point: run one batch, unless a previous batch is still running.

Usage:
  - Cron (recommended): install the configured schedules with: python setup_cron.py
      Each entry runs: cd /path/to/project && .venv/bin/python -m autoapply.run_daily
  - Or by hand: python -m autoapply.run_daily
"""
from __future__ import annotations

import fcntl
import sys

from autoapply.agent import run
from autoapply.config import DATA_DIR
from autoapply.log import get_logger

log = get_logger(__name__)

LOCK_PATH = DATA_DIR / "run.lock"


def run_locked() -> dict | None:
    """Run a batch while holding the run lock; None when another run holds it."""
    LOCK_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(LOCK_PATH, "w") as lock_file:
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            log.warning("Previous run still in progress, skipping this trigger")
            return None
        try:
            return run()
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


def main() -> int:
    result = run_locked()
    if result is None:
        return 0
    return 1 if result.get("error") else 0


if __name__ == "__main__":
    sys.exit(main())
