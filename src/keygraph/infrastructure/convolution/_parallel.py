"""
Batch-level fork-join for the convolution kernels.

Work is split by batch index. Each task writes only its own slice of a
preallocated output, so tasks never share a destination and need no locks.
NumPy releases the GIL inside its copy and add loops, which is where the
im2col/col2im time goes.

Configuration
-------------
``KEYGRAPH_NUM_THREADS``
    Positive integer. Upper bound on worker threads used by a single op.
    Defaults to ``min(32, os.cpu_count())``. Invalid values emit a
    `RuntimeWarning` and fall back to the default.
"""

from __future__ import annotations

import os
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

NUM_THREADS_ENV = "KEYGRAPH_NUM_THREADS"


def _default_num_workers() -> int:
    return min(32, os.cpu_count() or 1)


def resolve_num_workers(num_workers: Optional[int] = None) -> int:
    """
    Resolve the worker count for one kernel invocation.

    Parameters
    ----------
    num_workers : int, optional
        Explicit count. Takes precedence over the environment.

    Returns
    -------
    int
        Number of workers (>= 1).

    Raises
    ------
    ValueError
        If `num_workers` is given and is less than 1.
    """
    if num_workers is not None:
        num_workers = int(num_workers)
        if num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")
        return num_workers

    raw = os.environ.get(NUM_THREADS_ENV, "").strip()
    if not raw:
        return _default_num_workers()
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value < 1:
        warnings.warn(
            f"Ignoring {NUM_THREADS_ENV}={raw!r}: expected a positive integer.",
            RuntimeWarning,
            stacklevel=2,
        )
        return _default_num_workers()
    return value


def parallel_for_batch(
    fn: Callable[[int], None], batch: int, num_workers: Optional[int] = None
) -> None:
    """
    Run ``fn(i)`` for every ``i in range(batch)`` and wait for all of them.

    Runs inline when there is a single item or a single worker. The first
    exception raised by a task is re-raised after all tasks have been
    submitted.
    """
    workers = min(resolve_num_workers(num_workers), batch)
    if workers <= 1:
        for i in range(batch):
            fn(i)
        return

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(fn, i) for i in range(batch)]
        for f in futures:
            f.result()
