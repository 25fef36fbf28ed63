"""Memory estimates and checks for kinship runs.

A run holds one to three n x n float64 matrices while streaming (see
relkin.kinship.empirical.matrices_held), a chunk of decoded genotypes per
disk read, and (with PCA) the solver copy, the eigenvectors and the LAPACK
workspace. The IBS pair updates run in row strips of bounded size, so
their temporaries stay small. The pipeline checks the total against
available RAM before allocating.
"""

from typing import NamedTuple

import psutil
from loguru import logger

_BYTES_PER_GB = 1e9


def _matrix_gb(n: int) -> float:
    return n * n * 8 / _BYTES_PER_GB


def estimate_kinship_memory(n_samples: int, n_accumulators: int = 1) -> float:
    """GB held by the estimator's n x n accumulators.

    The skip-missing IBS estimator keeps a pair-count matrix next to the
    sums, so it needs n_accumulators=2.
    """
    return n_accumulators * _matrix_gb(n_samples)


def estimate_eigendecomp_memory(n_samples: int) -> float:
    """Peak GB of scipy.linalg.eigh with the divide-and-conquer driver.

    Counts the Fortran-ordered solver copy, the eigenvector output and the
    DSYEVD work arrays (1 + 6n + 2n^2 doubles, 3 + 5n ints).
    """
    n = n_samples
    workspace = ((1 + 6 * n + 2 * n * n) * 8 + (3 + 5 * n) * 4) / _BYTES_PER_GB
    return 2 * _matrix_gb(n) + workspace


class RunMemoryEstimate(NamedTuple):
    """Estimated memory of one kinship run, in GB."""

    accumulators_gb: float
    chunk_gb: float
    eigendecomp_gb: float

    @property
    def peak_gb(self) -> float:
        # Accumulators stay alive through PCA; the chunk buffer does not
        streaming = self.accumulators_gb + self.chunk_gb
        return max(streaming, self.accumulators_gb + self.eigendecomp_gb)


def estimate_run_memory(
    n_samples: int,
    n_accumulators: int = 1,
    chunk_size: int = 10_000,
    pca: bool = False,
) -> RunMemoryEstimate:
    """Break down the memory of a run.

    Args:
        n_samples: Number of individuals.
        n_accumulators: n x n matrices kept by the estimator.
        chunk_size: SNPs decoded per disk read (float64).
        pca: Whether the kinship matrix will be eigendecomposed.
    """
    return RunMemoryEstimate(
        accumulators_gb=estimate_kinship_memory(n_samples, n_accumulators),
        chunk_gb=n_samples * chunk_size * 8 / _BYTES_PER_GB,
        eigendecomp_gb=estimate_eigendecomp_memory(n_samples) if pca else 0.0,
    )


def check_memory_available(
    required_gb: float,
    safety_margin: float = 0.1,
    operation: str = "operation",
) -> bool:
    """Raise MemoryError unless required_gb (plus margin) is available.

    Args:
        required_gb: Estimated requirement in GB.
        safety_margin: Fractional headroom added to the requirement.
        operation: What the memory is for, used in the error message.

    Returns:
        True when the check passes.
    """
    available_gb = psutil.virtual_memory().available / _BYTES_PER_GB
    needed_gb = required_gb * (1 + safety_margin)
    if needed_gb > available_gb:
        raise MemoryError(
            f"Not enough memory for {operation}: need {needed_gb:.1f}GB "
            f"(including {safety_margin:.0%} margin), "
            f"{available_gb:.1f}GB available. "
            f"Use --no-check-memory to override."
        )
    logger.debug(f"Memory check passed for {operation}: {needed_gb:.2f}GB")
    return True


class MemorySnapshot(NamedTuple):
    """Process and system memory at one point of a run, in GB."""

    rss_gb: float
    available_gb: float
    total_gb: float


def get_memory_snapshot() -> MemorySnapshot:
    vm = psutil.virtual_memory()
    return MemorySnapshot(
        rss_gb=psutil.Process().memory_info().rss / _BYTES_PER_GB,
        available_gb=vm.available / _BYTES_PER_GB,
        total_gb=vm.total / _BYTES_PER_GB,
    )


def log_memory_snapshot(label: str = "", level: str = "DEBUG") -> MemorySnapshot:
    """Log RSS and available memory, tagged with a label."""
    snap = get_memory_snapshot()
    tag = f" [{label}]" if label else ""
    logger.log(
        level,
        f"Memory{tag}: RSS={snap.rss_gb:.2f}GB, "
        f"available={snap.available_gb:.1f}/{snap.total_gb:.1f}GB",
    )
    return snap
