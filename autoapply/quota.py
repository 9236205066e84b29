"""How many applications one criterion may produce per run."""
from __future__ import annotations


def applications_per_criterion(active_count: int) -> int:
    """Spread the per-run allowance across a user's active criteria.

    Few criteria get a deeper search each; many criteria get a shallow one.
    """
    if active_count <= 4:
        return 7
    if active_count >= 8:
        return 2
    return 6
