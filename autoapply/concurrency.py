"""Run units of work in parallel and wait for every one of them to settle."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from autoapply.log import get_logger

log = get_logger(__name__)


@dataclass
class Settled:
    item: Any
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def settle_all(
    fn: Callable[[Any], Any],
    items: Iterable[Any],
    *,
    max_workers: int | None = None,
    name: str = "unit",
) -> list[Settled]:
    """Apply *fn* to every item concurrently; never let one failure stop the rest.

    Returns one ``Settled`` per item, in input order. ``max_workers=None`` runs
    every item at once.
    """
    items = list(items)
    if not items:
        return []

    workers = max_workers or len(items)
    results: list[Settled] = [Settled(item=item) for item in items]
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=name) as pool:
        futures = {pool.submit(fn, item): idx for idx, item in enumerate(items)}
        for future in as_completed(futures):
            idx = futures[future]
            exc = future.exception()
            if exc is not None:
                log.error("[%s] unit %d/%d failed: %s", name, idx + 1, len(items), exc)
                results[idx].error = exc
            else:
                results[idx].value = future.result()
    return results
