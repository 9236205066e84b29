#!/usr/bin/env python3
"""Entry point to run one application batch now."""
from __future__ import annotations

import sys

from autoapply.config import load_settings
from autoapply.log import get_logger

log = get_logger(__name__)


def _check_setup(users_path) -> bool:
    """Return True if first-run setup is needed."""
    if not users_path.exists():
        print()
        print(f"  No user store found at {users_path}. Create it from the example:")
        print("    cp config/users.example.yaml config/users.yaml")
        print()
        return True
    return False


if __name__ == "__main__":
    settings = load_settings()
    if _check_setup(settings.users_path):
        sys.exit(1)

    from autoapply.agent import run

    result = run(settings)
    log.info("Run complete.")
    log.info("  Users processed: %d", result["users"])
    log.info("  Active criteria: %d", result["criteria"])
    log.info("  Applications stored: %d", result["applications"])
    if result["failed_users"]:
        log.info("  Failed users: %s", ", ".join(result["failed_users"]))
