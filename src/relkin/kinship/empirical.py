"""Streaming empirical kinship estimators.

Each estimator consumes one genotype vector per site (one dosage per
individual: 0, 1, 2, or negative for a missing call) and accumulates the
lower triangle of an n x n SymmetricMatrix. calculate() normalizes the sums
and mirrors the matrix into full symmetry.

Three estimators share the KinshipEstimator interface:

- IBSKinship: identity-by-state, 2 - |g_i - g_j| per site, averaged over
  the sites where at least one member of the pair is called.
- IBSImputeKinship: identity-by-state where a missing call contributes its
  expectation under the observed allele frequency::

                 0        1     2      missing
        0        2        1     0      2(1-p)
        1        1        2     1      1
        2        0        1     2      2p
        missing  2(1-p)   1     2p     2(p^2+q^2)

- BaldingNicolsKinship: allele-frequency normalized cross products
  (g_i - 2p)(g_j - 2p) / (2p(1-p)), averaged over sites.

Example:
    >>> from relkin.core.config import KinshipConfig, KinshipMethod
    >>> est = create_estimator(KinshipConfig(method=KinshipMethod.IBS))
    >>> est.add_genotype([0, 1, 2])
    >>> est.calculate()
    >>> est.get_kinship()[0, 1]
    1.0
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence

import jax.numpy as jnp
import numpy as np
from jax import jit

from relkin.core.config import MISSING_DOSAGE, KinshipConfig, KinshipMethod
from relkin.core.errors import DimensionMismatchError, InvalidGenotypeError
from relkin.core.jax_config import ensure_jax_configured
from relkin.core.matrix import SymmetricMatrix

MISSING = MISSING_DOSAGE
MISSING_CODE = 3

# Recentered dosages below this are missing (-9 minus a mean in [0, 2]).
_BN_MISSING_GUARD = -5.0

# Cells per temporary pair block in the IBS updates (32MB of float64)
_BLOCK_CELLS = 1 << 22


def _row_blocks(n: int) -> Iterator[tuple[int, int]]:
    """Row ranges [lo, hi) whose lower-triangle strips fit in _BLOCK_CELLS."""
    step = max(1, _BLOCK_CELLS // max(n, 1))
    for lo in range(0, n, step):
        yield lo, min(lo + step, n)


class KinshipEstimator(ABC):
    """Common interface of the streaming empirical estimators.

    Lifecycle: construct, add_genotype() once per site, calculate() once,
    then read get_kinship(). clear() resets the instance for reuse.
    Instances are not thread-safe.
    """

    method: KinshipMethod
    #: n x n float64 matrices held while streaming, for memory estimates
    n_matrices: int = 1

    def __init__(self) -> None:
        self._k = SymmetricMatrix()
        self._n_samples: int | None = None
        self._n_sites = 0
        self._calculated = False

    @property
    def n_samples(self) -> int | None:
        """Vector length fixed by the first accepted site, None before it."""
        return self._n_samples

    @property
    def n_sites(self) -> int:
        """Number of sites incorporated into the accumulator."""
        return self._n_sites

    @property
    def kinship(self) -> SymmetricMatrix:
        return self._k

    def get_kinship(self) -> SymmetricMatrix:
        return self.kinship

    def add_genotype(self, genotype: Sequence[float] | np.ndarray) -> None:
        """Fold one site into the accumulator.

        Args:
            genotype: Dosages for every individual. Negative values and NaN
                mark missing calls.

        Raises:
            InvalidGenotypeError: If any dosage is greater than 2. The site is
                rejected and no state changes.
            DimensionMismatchError: If the vector length differs from the first
                accepted site.
            RuntimeError: If calculate() already ran and clear() was not called.
        """
        if self._calculated:
            raise RuntimeError(
                "Kinship already calculated; call clear() before adding sites"
            )

        g = np.array(genotype, dtype=np.float64)
        if g.ndim != 1:
            raise DimensionMismatchError(
                f"Genotype vector must be 1-D, got shape {g.shape}"
            )
        if self._n_samples is not None and len(g) != self._n_samples:
            raise DimensionMismatchError(
                f"Genotype vector has {len(g)} dosages, expected {self._n_samples}"
            )

        g[np.isnan(g)] = MISSING
        g[g < 0] = MISSING
        invalid = np.flatnonzero(g > 2)
        if invalid.size:
            raise InvalidGenotypeError(int(invalid[0]), float(g[invalid[0]]))

        if self._n_samples is None:
            self._n_samples = len(g)
            self._allocate(len(g))

        self._accumulate(g)
        self._n_sites += 1

    def calculate(self) -> None:
        """Normalize accumulated sums and mirror the matrix.

        A no-op when no site was incorporated (the matrix stays empty/zero)
        and when called a second time.
        """
        if self._n_sites == 0 or self._calculated:
            return
        self._normalize()
        self._k.mirror_lower()
        self._calculated = True

    def clear(self) -> None:
        """Reset all state so the instance behaves like a fresh one."""
        self._k = SymmetricMatrix()
        self._n_samples = None
        self._n_sites = 0
        self._calculated = False

    def _allocate(self, n: int) -> None:
        self._k.resize(n)

    @abstractmethod
    def _accumulate(self, g: np.ndarray) -> None:
        """Add one validated site (missing encoded as negative) to the sums."""

    @abstractmethod
    def _normalize(self) -> None:
        """Turn the lower-triangle sums into kinship values."""

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(n_samples={self._n_samples}, "
            f"n_sites={self._n_sites})"
        )


def _ibs_impute_table(p: float) -> np.ndarray:
    """Expected IBS contribution indexed by genotype codes {0, 1, 2, missing}."""
    table = np.empty((4, 4), dtype=np.float64)
    table[0, 0] = table[1, 1] = table[2, 2] = 2.0
    table[0, 1] = table[1, 0] = table[1, 2] = table[2, 1] = 1.0
    table[1, 3] = table[3, 1] = 1.0
    table[0, 2] = table[2, 0] = 0.0
    table[0, 3] = table[3, 0] = 2.0 * (1.0 - p)
    table[2, 3] = table[3, 2] = 2.0 * p
    table[3, 3] = 2.0 - 4.0 * p * (1.0 - p)
    return table


class IBSImputeKinship(KinshipEstimator):
    """IBS kinship imputing missing calls from the site's allele frequency.

    Args:
        double_count_sites: Advance the site divisor twice per site, which
            halves every kinship value. Matches vcf2kinship output; off by
            default.
    """

    method = KinshipMethod.IBS_IMPUTE

    def __init__(self, double_count_sites: bool = False) -> None:
        super().__init__()
        self.double_count_sites = double_count_sites

    @property
    def divisor(self) -> int:
        """Site count used by calculate()."""
        return 2 * self._n_sites if self.double_count_sites else self._n_sites

    def _accumulate(self, g: np.ndarray) -> None:
        called = g >= 0
        n_called = int(called.sum())
        # p is the mean called dosage; table entries assume it lies in [0, 1]
        p = float(g[called].sum()) / n_called if n_called > 0 else 0.0

        codes = np.where(called, np.trunc(g), MISSING_CODE).astype(np.intp)
        table = _ibs_impute_table(p)
        for lo, hi in _row_blocks(len(g)):
            strip = table[codes[lo:hi, None], codes[None, :hi]]
            self._k.data[lo:hi, :hi] += np.tril(strip, k=lo)

    def _normalize(self) -> None:
        self._k.data = np.tril(self._k.data) / self.divisor


class IBSKinship(KinshipEstimator):
    """IBS kinship skipping pairs where both calls are missing.

    Each pair is averaged over its own count of valid sites, kept in a
    parallel count matrix. Dosages are truncated to integers before taking
    the difference.
    """

    method = KinshipMethod.IBS
    n_matrices = 2

    def __init__(self) -> None:
        super().__init__()
        self._count = SymmetricMatrix()

    @property
    def pair_counts(self) -> SymmetricMatrix:
        """Per-pair number of sites where at least one call was present."""
        return self._count

    def clear(self) -> None:
        super().clear()
        self._count = SymmetricMatrix()

    def _allocate(self, n: int) -> None:
        super()._allocate(n)
        self._count.resize(n)

    def _accumulate(self, g: np.ndarray) -> None:
        called = g >= 0
        codes = np.trunc(g)
        for lo, hi in _row_blocks(len(g)):
            valid = np.tril(called[lo:hi, None] | called[None, :hi], k=lo)
            ibs = 2.0 - np.abs(codes[lo:hi, None] - codes[None, :hi])
            self._k.data[lo:hi, :hi] += np.where(valid, ibs, 0.0)
            self._count.data[lo:hi, :hi] += valid

    def _normalize(self) -> None:
        sums = np.tril(self._k.data)
        counts = np.tril(self._count.data)
        self._k.data = np.divide(
            sums, counts, out=np.zeros_like(sums), where=counts > 0
        )
        self._count.mirror_lower()


@jit
def _accumulate_balding_nicols(
    K: jnp.ndarray, centered: jnp.ndarray, scale: jnp.ndarray
) -> jnp.ndarray:
    """Add a block of sites' scaled cross products to the lower triangle of K.

    A pair is left out at a site only when both calls are missing, so the
    both-missing products are subtracted from the full block product.

    Args:
        K: Current accumulator (n_samples, n_samples).
        centered: Recentered dosages (n_samples, n_block); missing calls
            sit below the -5 guard. Padding columns are zero.
        scale: Per-site 1 / sqrt(2p(1-p)), 0 for degenerate sites and
            padding.

    Returns:
        Updated accumulator.
    """
    missing = jnp.where(centered < _BN_MISSING_GUARD, centered, 0.0)
    weighted = centered * scale[None, :]
    both_missing = (missing * scale[None, :]) @ missing.T
    return K + jnp.tril(weighted @ centered.T - both_missing)


class BaldingNicolsKinship(KinshipEstimator):
    """Balding-Nicols kinship from allele-frequency normalized dosages.

    Sites are buffered and folded into a device-resident accumulator one
    block at a time, as a single XLA matrix product per block. The numpy
    matrix is refreshed only when kinship is read.

    Args:
        block_size: Sites per kernel call.
    """

    method = KinshipMethod.BALDING_NICOLS
    # numpy result, device accumulator and kernel output
    n_matrices = 3

    def __init__(self, block_size: int = 256) -> None:
        super().__init__()
        ensure_jax_configured()
        self.block_size = block_size
        self._acc: jnp.ndarray | None = None
        self._pending: list[np.ndarray] = []
        self._pending_scale: list[float] = []

    @property
    def kinship(self) -> SymmetricMatrix:
        if self._acc is not None:
            self._flush()
            self._k.data = np.array(self._acc)
        return self._k

    @staticmethod
    def site_scale(mean: float) -> float:
        """sqrt(1 / ((1 - mean/2) * mean)) with mean = 2p; 0 when undefined."""
        denominator = (1.0 - mean / 2.0) * mean
        if denominator <= 0.0:
            return 0.0
        return math.sqrt(1.0 / denominator)

    def clear(self) -> None:
        super().clear()
        self._acc = None
        self._pending = []
        self._pending_scale = []

    def _allocate(self, n: int) -> None:
        super()._allocate(n)
        self._acc = jnp.zeros((n, n), dtype=jnp.float64)

    def _accumulate(self, g: np.ndarray) -> None:
        called = g >= 0
        n_called = int(called.sum())
        if n_called > 0:
            mean = float(g[called].sum()) / n_called
            scale = self.site_scale(mean)
        else:
            mean = scale = 0.0

        self._pending.append(g - mean)
        self._pending_scale.append(scale)
        if len(self._pending) >= self.block_size:
            self._flush()

    def _flush(self) -> None:
        if not self._pending:
            return
        # Fixed block width keeps one compiled kernel per cohort size
        centered = np.zeros((self._n_samples, self.block_size))
        scale = np.zeros(self.block_size)
        n_pending = len(self._pending)
        centered[:, :n_pending] = np.column_stack(self._pending)
        scale[:n_pending] = self._pending_scale
        self._acc = _accumulate_balding_nicols(
            self._acc,
            jnp.asarray(centered, dtype=jnp.float64),
            jnp.asarray(scale, dtype=jnp.float64),
        )
        self._pending = []
        self._pending_scale = []

    def _normalize(self) -> None:
        self._flush()
        self._k.data = np.tril(np.array(self._acc)) / self._n_sites
        self._acc = None


def create_estimator(config: KinshipConfig) -> KinshipEstimator:
    """Construct the estimator selected by the configuration.

    Raises:
        ValueError: If the method is unknown.
    """
    method = KinshipMethod(config.method)
    if method is KinshipMethod.IBS:
        return IBSKinship()
    if method is KinshipMethod.IBS_IMPUTE:
        return IBSImputeKinship(double_count_sites=config.double_count_sites)
    if method is KinshipMethod.BALDING_NICOLS:
        return BaldingNicolsKinship()
    raise ValueError(f"Unknown kinship method: {config.method!r}")


def matrices_held(method: KinshipMethod | str) -> int:
    """n x n float64 matrices the method's estimator holds while streaming."""
    classes = {
        KinshipMethod.IBS: IBSKinship,
        KinshipMethod.IBS_IMPUTE: IBSImputeKinship,
        KinshipMethod.BALDING_NICOLS: BaldingNicolsKinship,
    }
    return classes[KinshipMethod(method)].n_matrices
