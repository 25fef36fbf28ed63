"""Eigendecomposition of a kinship matrix for PCA.

The solver sits behind a narrow interface: a symmetric array goes in,
ascending eigenvalues with column eigenvectors come out, or
EigenNonConvergenceError is raised. decompose_kinship() owns the copy
handed to the solver and re-indexes the result so components come out
largest eigenvalue first.

The default solver is scipy.linalg.eigh (LAPACK dsyevd) run under an
explicit BLAS thread limit from relkin.core.threading.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol

import numpy as np
import scipy.linalg
from loguru import logger

from relkin.core.errors import DimensionMismatchError, EigenNonConvergenceError
from relkin.core.matrix import SymmetricMatrix
from relkin.core.memory import (
    check_memory_available,
    estimate_eigendecomp_memory,
    log_memory_snapshot,
)
from relkin.core.threading import blas_threads


class SymmetricEigenSolver(Protocol):
    """Solve a dense symmetric eigenproblem.

    Implementations return ``(eigenvalues, eigenvectors)`` with eigenvalues
    in ascending order and eigenvector k in column k, and raise
    EigenNonConvergenceError when the decomposition fails.
    """

    def __call__(self, a: np.ndarray) -> tuple[np.ndarray, np.ndarray]: ...


class ScipyEigenSolver:
    """LAPACK solver via scipy.linalg.eigh.

    Args:
        driver: LAPACK driver ("evd", "evr", "ev", "evx").
        n_threads: BLAS threads, None for RELKIN_BLAS_THREADS or the
            physical core count.
    """

    def __init__(self, driver: str = "evd", n_threads: int | None = None) -> None:
        self.driver = driver
        self.n_threads = n_threads

    def __call__(self, a: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        try:
            with blas_threads(self.n_threads):
                eigenvalues, eigenvectors = scipy.linalg.eigh(
                    a, driver=self.driver, overwrite_a=True, check_finite=True
                )
        except (np.linalg.LinAlgError, ValueError) as e:
            raise EigenNonConvergenceError(
                f"Kinship decomposition failed: {type(e).__name__}: {e}"
            ) from e

        finite = np.all(np.isfinite(eigenvalues)) and np.all(np.isfinite(eigenvectors))
        if not finite:
            raise EigenNonConvergenceError(
                "Kinship decomposition failed: non-finite eigenpairs"
            )
        return eigenvalues, eigenvectors


@dataclass
class PCAResult:
    """Eigenpairs of a kinship matrix, largest eigenvalue first.

    Attributes:
        eigenvalues: (n,) non-increasing eigenvalues.
        eigenvectors: (n, n) array; column k is the eigenvector of
            eigenvalues[k] and row i holds individual i's loadings.
    """

    eigenvalues: np.ndarray
    eigenvectors: np.ndarray

    @property
    def n_components(self) -> int:
        return len(self.eigenvalues)

    def pairs(self) -> Iterator[tuple[float, np.ndarray]]:
        """Yield (eigenvalue, eigenvector) in descending eigenvalue order."""
        for k in range(self.n_components):
            yield float(self.eigenvalues[k]), self.eigenvectors[:, k]

    def explained_variance_ratio(self) -> np.ndarray:
        """Each eigenvalue as a fraction of the trace (zeros if trace is 0)."""
        total = float(np.sum(self.eigenvalues))
        if total == 0.0:
            return np.zeros_like(self.eigenvalues)
        return self.eigenvalues / total


def decompose_kinship(
    matrix: SymmetricMatrix | np.ndarray,
    solver: SymmetricEigenSolver | None = None,
    check_memory: bool = False,
) -> PCAResult:
    """Eigendecompose a kinship matrix, ordering components descending.

    The input is never modified: the lower triangle is mirrored into a
    Fortran-ordered copy that the solver may overwrite.

    Args:
        matrix: Square symmetric kinship matrix.
        solver: Eigen solver, defaults to ScipyEigenSolver().
        check_memory: If True, check available memory before solving.

    Returns:
        PCAResult with non-increasing eigenvalues.

    Raises:
        DimensionMismatchError: If the matrix is not square.
        EigenNonConvergenceError: If the solver fails. No partial result.
        MemoryError: If check_memory=True and memory is insufficient.
    """
    values = matrix.data if isinstance(matrix, SymmetricMatrix) else np.asarray(matrix)
    if values.ndim != 2 or values.shape[0] != values.shape[1]:
        raise DimensionMismatchError(
            f"Kinship matrix must be square, got shape {values.shape}"
        )
    n_samples = values.shape[0]

    if check_memory:
        check_memory_available(
            estimate_eigendecomp_memory(n_samples),
            safety_margin=0.1,
            operation=f"eigendecomposition of {n_samples:,}x{n_samples:,} kinship",
        )

    a = np.tril(values.astype(np.float64))
    a = np.asfortranarray(a + np.tril(a, k=-1).T)

    if solver is None:
        solver = ScipyEigenSolver()

    logger.info(f"Eigendecomposing kinship matrix ({n_samples:,} x {n_samples:,})")
    log_memory_snapshot(f"before_eigendecomp_{n_samples}samples")
    start_time = time.perf_counter()

    eigenvalues, eigenvectors = solver(a)

    elapsed = time.perf_counter() - start_time
    logger.info(f"Eigendecomposition completed in {elapsed:.2f} seconds")

    order = np.argsort(eigenvalues, kind="stable")[::-1]
    return PCAResult(
        eigenvalues=np.asarray(eigenvalues)[order].copy(),
        eigenvectors=np.asarray(eigenvectors)[:, order].copy(),
    )
