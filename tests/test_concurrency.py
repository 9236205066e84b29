from __future__ import annotations

import threading
import time

from autoapply.concurrency import settle_all


def test_results_keep_input_order():
    def slow_square(n: int) -> int:
        time.sleep(0.01 * (5 - n))
        return n * n

    outcomes = settle_all(slow_square, range(5))

    assert [o.value for o in outcomes] == [0, 1, 4, 9, 16]
    assert all(o.ok for o in outcomes)


def test_one_failure_does_not_cancel_siblings():
    finished: list[int] = []
    lock = threading.Lock()

    def work(n: int) -> int:
        if n == 2:
            raise ValueError("bad unit")
        time.sleep(0.02)
        with lock:
            finished.append(n)
        return n

    outcomes = settle_all(work, [1, 2, 3, 4])

    assert sorted(finished) == [1, 3, 4]
    assert isinstance(outcomes[1].error, ValueError)
    assert [o.ok for o in outcomes] == [True, False, True, True]


def test_max_workers_bounds_parallelism():
    active = 0
    peak = 0
    lock = threading.Lock()

    def work(_: int) -> None:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1

    settle_all(work, range(12), max_workers=3)

    assert peak <= 3


def test_empty_input():
    assert settle_all(lambda x: x, []) == []
