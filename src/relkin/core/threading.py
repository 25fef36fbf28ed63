"""Thread limits for the PCA eigen solver.

scipy.linalg.eigh runs in the system BLAS/LAPACK thread pool, which
threadpoolctl can cap per call. The Balding-Nicols kernel runs under XLA
and is not affected by these limits.

The thread count comes from, in order: an explicit argument, the
RELKIN_BLAS_THREADS environment variable, the physical core count.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import contextmanager

import psutil
from loguru import logger
from threadpoolctl import threadpool_info, threadpool_limits

BLAS_THREADS_ENV = "RELKIN_BLAS_THREADS"


def _clamp(n: int) -> int:
    return max(1, min(n, os.cpu_count() or 1))


def get_blas_thread_count(n_threads: int | None = None) -> int:
    """Resolve the BLAS thread count for the eigen solver.

    Args:
        n_threads: Explicit request; None consults the environment.

    Returns:
        Thread count between 1 and os.cpu_count().
    """
    if n_threads is not None:
        return _clamp(n_threads)

    raw = os.environ.get(BLAS_THREADS_ENV)
    if raw is not None:
        try:
            return _clamp(int(raw))
        except ValueError:
            logger.warning(f"Ignoring {BLAS_THREADS_ENV}={raw!r}: not an integer")

    # Hyperthreads do not speed up dense LAPACK
    return _clamp(psutil.cpu_count(logical=False) or os.cpu_count() or 1)


def blas_info() -> list[dict]:
    """Loaded BLAS libraries with their current thread counts."""
    return [
        {
            "library": pool.get("internal_api"),
            "version": pool.get("version"),
            "num_threads": pool.get("num_threads"),
        }
        for pool in threadpool_info()
        if pool.get("user_api") == "blas"
    ]


@contextmanager
def blas_threads(n_threads: int | None = None) -> Generator[None, None, None]:
    """Cap BLAS threads for the duration of the block.

    Args:
        n_threads: Thread count, resolved by get_blas_thread_count().

    Example:
        >>> with blas_threads(4):
        ...     w, v = scipy.linalg.eigh(K)
    """
    n = get_blas_thread_count(n_threads)
    logger.debug(f"BLAS threads limited to {n}")
    with threadpool_limits(limits=n, user_api="blas"):
        yield
