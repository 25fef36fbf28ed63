"""Kinship computation drivers.

These functions own the active estimator for one run: they feed it one
genotype vector at a time, skip sites it rejects, call calculate() once and
hand back the finished matrix.

- accumulate_kinship: drive any iterable of sites into an estimator
- compute_empirical_kinship: in-memory (n_samples, n_sites) genotype matrix
- compute_kinship_streaming: PLINK fileset streamed through the site filter
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from loguru import logger

from relkin.core.config import KinshipConfig, KinshipMethod
from relkin.core.errors import InvalidGenotypeError
from relkin.core.matrix import SymmetricMatrix
from relkin.core.memory import (
    check_memory_available,
    estimate_kinship_memory,
    log_memory_snapshot,
)
from relkin.core.progress import progress_iterator
from relkin.core.site_filter import SiteFilter, SiteFilterStats
from relkin.io.lists import update_ids as apply_id_map
from relkin.io.plink import (
    get_plink_metadata,
    iter_site_genotypes,
    resolve_sample_index,
)
from relkin.kinship.empirical import (
    KinshipEstimator,
    create_estimator,
    matrices_held,
)


@dataclass
class AccumulationSummary:
    """Outcome of streaming sites into an estimator.

    Attributes:
        n_sites_used: Sites folded into the kinship estimate.
        n_sites_rejected: Sites rejected for invalid dosages.
        rejected_site_ids: Identifiers of rejected sites, when known.
    """

    n_sites_used: int = 0
    n_sites_rejected: int = 0
    rejected_site_ids: list[str] = field(default_factory=list)


@dataclass
class StreamingKinshipResult:
    """Result of compute_kinship_streaming()."""

    kinship: SymmetricMatrix
    family_ids: list[str]
    individual_ids: list[str]
    filter_stats: SiteFilterStats
    summary: AccumulationSummary


def accumulate_kinship(
    estimator: KinshipEstimator,
    sites: Iterable,
    show_progress: bool = False,
    total: int | None = None,
) -> AccumulationSummary:
    """Feed sites into an estimator, then finalize it.

    Sites with invalid dosages are counted and skipped; the stream continues.
    When no site is usable, calculate() leaves an all-zero matrix and a
    warning is logged.

    Args:
        estimator: A fresh (or cleared) estimator.
        sites: Dosage vectors, or objects with ``dosages`` and ``site_id``
            attributes (see relkin.io.plink.Site).
        show_progress: Show a progress bar while streaming.
        total: Number of sites for the progress bar, if known.

    Returns:
        AccumulationSummary with used and rejected counts.

    Raises:
        DimensionMismatchError: If a vector's length differs from the first.
    """
    summary = AccumulationSummary()
    iterator = iter(sites)
    if show_progress:
        iterator = progress_iterator(iterator, total=total, desc="Computing kinship")

    for position, site in enumerate(iterator):
        dosages = getattr(site, "dosages", site)
        try:
            estimator.add_genotype(dosages)
        except InvalidGenotypeError as e:
            site_id = getattr(site, "site_id", str(position))
            summary.n_sites_rejected += 1
            summary.rejected_site_ids.append(site_id)
            logger.debug(f"Rejected site {site_id}: {e}")
            continue
        summary.n_sites_used += 1

    if summary.n_sites_rejected:
        logger.warning(
            f"{summary.n_sites_rejected:,} sites rejected for invalid genotypes"
        )
    if summary.n_sites_used == 0:
        logger.warning("No sites were used; kinship matrix is all zero")

    estimator.calculate()
    return summary


def compute_empirical_kinship(
    genotypes: np.ndarray,
    config: KinshipConfig | None = None,
) -> SymmetricMatrix:
    """Compute empirical kinship from an in-memory genotype matrix.

    Args:
        genotypes: Matrix (n_samples, n_sites) of dosages; NaN or negative
            values are missing.
        config: Estimator selection, defaults to skip-missing IBS.

    Returns:
        Symmetric kinship matrix (n_samples, n_samples). All zero when
        every site was rejected.

    Example:
        >>> X = np.array([[0, 0], [1, 0], [2, -9]], dtype=np.float64)
        >>> K = compute_empirical_kinship(X)
        >>> K[0, 1]
        1.5
    """
    genotypes = np.asarray(genotypes, dtype=np.float64)
    if genotypes.ndim != 2:
        raise ValueError(f"Genotype matrix must be 2-D, got shape {genotypes.shape}")

    estimator = create_estimator(config or KinshipConfig())
    accumulate_kinship(estimator, genotypes.T)

    K = estimator.get_kinship()
    if K.n_rows == 0:
        K.resize(genotypes.shape[0])
    return K


def compute_kinship_streaming(
    bfile: Path,
    config: KinshipConfig | None = None,
    site_filter: SiteFilter | None = None,
    keep: Iterable[str] | None = None,
    remove: Iterable[str] | None = None,
    update_ids: Mapping[str, str] | None = None,
    chunk_size: int = 10_000,
    check_memory: bool = True,
    show_progress: bool = True,
) -> StreamingKinshipResult:
    """Compute empirical kinship from a PLINK fileset, one site at a time.

    Args:
        bfile: Path prefix for PLINK files (without .bed/.bim/.fam extension).
        config: Estimator selection, defaults to skip-missing IBS.
        site_filter: Site QC thresholds, defaults to SiteFilter().
        keep: Individual ids to include (None = all).
        remove: Individual ids to exclude.
        update_ids: Old individual id -> new id, applied to the output ids
            after keep/remove.
        chunk_size: Number of SNPs per disk read.
        check_memory: If True, check available memory before allocating
            the accumulators.
        show_progress: If True, show a progress bar.

    Returns:
        StreamingKinshipResult with the matrix, ids and site counters.

    Raises:
        FileNotFoundError: If the PLINK .bed file does not exist.
        ValueError: If no individual remains after keep/remove.
        MemoryError: If check_memory=True and memory is insufficient.
    """
    config = config or KinshipConfig()
    site_filter = site_filter or SiteFilter()
    start_time = time.perf_counter()

    meta = get_plink_metadata(bfile)
    sample_index = None
    if keep is not None or remove is not None:
        sample_index = resolve_sample_index(meta["iid"], keep, remove)
    family_ids = meta["fid"]
    individual_ids = meta["iid"]
    if sample_index is not None:
        family_ids = family_ids[sample_index]
        individual_ids = individual_ids[sample_index]
    individual_ids = [str(i) for i in individual_ids]
    if update_ids:
        individual_ids = apply_id_map(individual_ids, update_ids)
    n_samples = len(individual_ids)
    n_snps = meta["n_snps"]

    logger.info("Computing empirical kinship")
    logger.info(f"  Method: {KinshipMethod(config.method).value}")
    logger.info(f"  Individuals: {n_samples:,}")
    logger.info(f"  Sites: {n_snps:,}")
    logger.info(
        f"  Site filter: MAF >= {site_filter.min_maf}, "
        f"missing <= {site_filter.max_missing}"
    )
    if site_filter.ranges:
        logger.info(f"  Ranges: {len(site_filter.ranges)}")

    if check_memory:
        check_memory_available(
            estimate_kinship_memory(n_samples, matrices_held(config.method)),
            safety_margin=0.1,
            operation=f"kinship accumulation ({n_samples:,} individuals)",
        )
    log_memory_snapshot(f"before_kinship_{n_samples}samples")

    stats = SiteFilterStats()

    def passing_sites():
        for site in iter_site_genotypes(bfile, chunk_size, sample_index):
            reason = site_filter.check(
                site.dosages, site.chromosome, site.position
            )
            stats.record(reason)
            if reason is None:
                yield site

    estimator = create_estimator(config)
    summary = accumulate_kinship(
        estimator, passing_sites(), show_progress=show_progress, total=None
    )

    K = estimator.get_kinship()
    if K.n_rows == 0:
        K.resize(n_samples)

    elapsed = time.perf_counter() - start_time
    logger.info(
        f"Kinship matrix computed in {elapsed:.2f}s from "
        f"{summary.n_sites_used:,} of {stats.n_seen:,} sites"
    )
    log_memory_snapshot(f"after_kinship_{n_samples}samples")

    return StreamingKinshipResult(
        kinship=K,
        family_ids=[str(f) for f in family_ids],
        individual_ids=individual_ids,
        filter_stats=stats,
        summary=summary,
    )
