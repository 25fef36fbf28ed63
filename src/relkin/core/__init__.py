"""Core building blocks for relkin.

This package contains the shared data structures and runtime support:
- config: Configuration dataclasses
- errors: Exception types
- matrix: Symmetric accumulator/result container
- site_filter: Per-site QC thresholds and counters
- jax_config: JAX configuration
- memory, threading, progress: runtime support
"""

from relkin.core.config import KinshipConfig, KinshipMethod, OutputConfig
from relkin.core.errors import (
    DimensionMismatchError,
    EigenNonConvergenceError,
    InvalidGenotypeError,
    PedigreeError,
)
from relkin.core.jax_config import configure_jax, ensure_jax_configured, get_jax_info
from relkin.core.matrix import SymmetricMatrix
from relkin.core.memory import (
    MemorySnapshot,
    RunMemoryEstimate,
    check_memory_available,
    estimate_eigendecomp_memory,
    estimate_kinship_memory,
    estimate_run_memory,
    get_memory_snapshot,
    log_memory_snapshot,
)
from relkin.core.site_filter import (
    GenomicRange,
    SiteFilter,
    SiteFilterStats,
    SkipReason,
    parse_range_list,
)

__all__ = [
    "DimensionMismatchError",
    "EigenNonConvergenceError",
    "GenomicRange",
    "InvalidGenotypeError",
    "KinshipConfig",
    "KinshipMethod",
    "MemorySnapshot",
    "RunMemoryEstimate",
    "OutputConfig",
    "PedigreeError",
    "SiteFilter",
    "SiteFilterStats",
    "SkipReason",
    "SymmetricMatrix",
    "check_memory_available",
    "configure_jax",
    "ensure_jax_configured",
    "estimate_eigendecomp_memory",
    "estimate_kinship_memory",
    "estimate_run_memory",
    "get_jax_info",
    "get_memory_snapshot",
    "log_memory_snapshot",
    "parse_range_list",
]
