"""Pipeline orchestration for relkin.

Provides a single PipelineRunner service class that encapsulates one kinship
run: validate inputs, compute kinship (empirical from a PLINK fileset or
expected from a pedigree), write the .kinship table and optionally the .pca
table. Both the CLI (cli.py) and Python API (api.py) delegate to this runner.

Example:
    >>> from relkin.pipeline import PipelineConfig, PipelineRunner
    >>> config = PipelineConfig(bfile=Path("data/study"), pca=True)
    >>> result = PipelineRunner(config).run()
    >>> print(f"Kinship for {result.n_samples} individuals")
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from relkin.core.config import KinshipConfig, KinshipMethod, OutputConfig
from relkin.core.errors import DimensionMismatchError, EigenNonConvergenceError
from relkin.core.memory import (
    RunMemoryEstimate,
    check_memory_available,
    estimate_run_memory,
)
from relkin.core.matrix import SymmetricMatrix
from relkin.core.site_filter import GenomicRange, SiteFilter, SiteFilterStats
from relkin.io.pedigree import read_pedigree
from relkin.io.plink import get_plink_metadata
from relkin.kinship.compute import AccumulationSummary, compute_kinship_streaming
from relkin.kinship.empirical import matrices_held
from relkin.kinship.io import write_kinship_table
from relkin.kinship.pedigree import compute_pedigree_kinship
from relkin.pca.eigen import PCAResult, decompose_kinship
from relkin.pca.io import write_pca_table


@dataclass
class PipelineConfig:
    """Configuration for a kinship pipeline run.

    Exactly one of ``bfile`` and ``ped`` must be set.

    Attributes:
        bfile: PLINK binary file prefix for empirical kinship.
        ped: Pedigree table for expected kinship.
        method: Empirical estimator.
        double_count_sites: Halve IBS-impute values as vcf2kinship does.
        min_maf: Sites with allele frequency outside [min_maf, 1 - min_maf]
            are skipped.
        max_miss: Sites with a missing-call fraction above this are skipped.
        autosomes_only: Skip sites outside chromosomes 1-22.
        keep: Individual ids to include (None = all).
        remove: Individual ids to exclude.
        ranges: Only sites inside one of these ranges are used (empty = all).
        update_ids: Old individual id -> new id for the output tables.
        pca: If True, eigendecompose the kinship matrix and write .pca.
        output_dir: Directory for output files.
        output_prefix: Prefix for output filenames.
        chunk_size: SNPs per disk read when streaming the .bed file.
        check_memory: If True, check available memory before allocating.
        show_progress: If True, show progress bars.
    """

    bfile: Path | None = None
    ped: Path | None = None
    method: KinshipMethod = KinshipMethod.IBS
    double_count_sites: bool = False
    min_maf: float = 0.05
    max_miss: float = 0.05
    autosomes_only: bool = True
    keep: list[str] | None = None
    remove: list[str] | None = None
    ranges: tuple[GenomicRange, ...] = ()
    update_ids: dict[str, str] | None = None
    pca: bool = False
    output_dir: Path = field(default_factory=lambda: Path("output"))
    output_prefix: str = "result"
    chunk_size: int = 10_000
    check_memory: bool = True
    show_progress: bool = True

    @property
    def output(self) -> OutputConfig:
        return OutputConfig(outdir=self.output_dir, prefix=self.output_prefix)


@dataclass
class PipelineResult:
    """Result of a pipeline run.

    Attributes:
        kinship: Final symmetric kinship matrix.
        family_ids: Family id of each row.
        individual_ids: Individual id of each row.
        kinship_path: Written .kinship table, None if it could not be written.
        pca: Eigendecomposition, None if not requested or if it failed.
        pca_path: Written .pca table, None if not written.
        filter_stats: Site filter counters (empirical runs only).
        summary: Used and rejected site counts (empirical runs only).
        timing: Timing breakdown by pipeline phase.
    """

    kinship: SymmetricMatrix
    family_ids: list[str]
    individual_ids: list[str]
    kinship_path: Path | None = None
    pca: PCAResult | None = None
    pca_path: Path | None = None
    filter_stats: SiteFilterStats | None = None
    summary: AccumulationSummary | None = None
    timing: dict[str, float] = field(default_factory=dict)

    @property
    def n_samples(self) -> int:
        return len(self.individual_ids)

    def site_summary(self) -> dict[str, int]:
        """Filter and accumulation counters; empty for pedigree runs."""
        counts: dict[str, int] = {}
        if self.filter_stats is not None:
            counts.update(self.filter_stats.as_dict())
        if self.summary is not None:
            counts["sites_rejected"] = self.summary.n_sites_rejected
            counts["sites_used"] = self.summary.n_sites_used
        return counts

    def output_files(self) -> dict[str, Path | None]:
        files: dict[str, Path | None] = {"kinship": self.kinship_path}
        if self.pca_path is not None:
            files["pca"] = self.pca_path
        return files


class PipelineRunner:
    """Orchestrates a complete kinship run.

    Raises exceptions (ValueError, FileNotFoundError, MemoryError,
    PedigreeError) rather than calling sys.exit or typer.Exit. The CLI
    wrapper catches these and converts to user-friendly error messages.
    A PCA failure is logged and the run continues without a .pca file.

    Args:
        config: Pipeline configuration.

    Example:
        >>> config = PipelineConfig(ped=Path("family.ped"), pca=True)
        >>> result = PipelineRunner(config).run()
    """

    def __init__(self, config: PipelineConfig) -> None:
        self.config = config

    def validate_inputs(self) -> None:
        """Validate that the input is unambiguous and its files exist.

        Raises:
            ValueError: If neither or both of bfile and ped are set, or a
                threshold is out of range.
            FileNotFoundError: If PLINK files (.bed, .bim, .fam) or the
                pedigree file are missing.
        """
        bfile, ped = self.config.bfile, self.config.ped
        if (bfile is None) == (ped is None):
            raise ValueError("Exactly one of bfile and ped must be given")

        if bfile is not None:
            for ext in (".bed", ".bim", ".fam"):
                p = Path(f"{bfile}{ext}")
                if not p.exists():
                    raise FileNotFoundError(f"PLINK {ext} file not found: {p}")
            # Raises ValueError on out-of-range thresholds
            self.site_filter()
        elif not Path(ped).exists():
            raise FileNotFoundError(f"Pedigree file not found: {ped}")

        if self.config.chunk_size < 1:
            raise ValueError(
                f"chunk_size must be positive, got {self.config.chunk_size}"
            )

    def site_filter(self) -> SiteFilter:
        return SiteFilter(
            min_maf=self.config.min_maf,
            max_missing=self.config.max_miss,
            autosomes_only=self.config.autosomes_only,
            ranges=tuple(self.config.ranges),
        )

    def check_memory_requirements(self) -> RunMemoryEstimate | None:
        """Check the peak memory of an empirical run before streaming.

        Sized on the full .fam cohort, so keep/remove lists only make the
        estimate conservative. Pedigree runs are small and skip the check.

        Raises:
            MemoryError: If the estimated peak exceeds available memory.
        """
        if not self.config.check_memory or self.config.bfile is None:
            return None

        n_samples = get_plink_metadata(Path(self.config.bfile))["n_samples"]
        estimate = estimate_run_memory(
            n_samples,
            n_accumulators=matrices_held(self.config.method),
            chunk_size=self.config.chunk_size,
            pca=self.config.pca,
        )
        logger.info(
            f"Memory estimate: {estimate.peak_gb:.2f}GB peak "
            f"(accumulators {estimate.accumulators_gb:.2f}GB, "
            f"chunk {estimate.chunk_gb:.2f}GB, "
            f"eigendecomposition {estimate.eigendecomp_gb:.2f}GB)"
        )
        check_memory_available(
            estimate.peak_gb, operation=f"kinship run ({n_samples:,} individuals)"
        )
        return estimate

    def compute_kinship(self) -> PipelineResult:
        """Compute the kinship matrix for the configured input.

        Returns:
            PipelineResult holding the matrix and ids, without output paths.
        """
        if self.config.ped is not None:
            pedigree = read_pedigree(Path(self.config.ped))
            K = compute_pedigree_kinship(pedigree)
            return PipelineResult(
                kinship=K,
                family_ids=pedigree.family_ids,
                individual_ids=pedigree.person_ids,
            )

        streamed = compute_kinship_streaming(
            Path(self.config.bfile),
            config=KinshipConfig(
                method=KinshipMethod(self.config.method),
                double_count_sites=self.config.double_count_sites,
            ),
            site_filter=self.site_filter(),
            keep=self.config.keep,
            remove=self.config.remove,
            update_ids=self.config.update_ids,
            chunk_size=self.config.chunk_size,
            check_memory=False,  # Already checked in run()
            show_progress=self.config.show_progress,
        )
        stats = streamed.filter_stats
        logger.info(
            f"Sites: {stats.n_seen:,} seen, {stats.n_skipped:,} filtered, "
            f"{streamed.summary.n_sites_rejected:,} rejected, "
            f"{streamed.summary.n_sites_used:,} used"
        )
        return PipelineResult(
            kinship=streamed.kinship,
            family_ids=streamed.family_ids,
            individual_ids=streamed.individual_ids,
            filter_stats=stats,
            summary=streamed.summary,
        )

    def write_kinship(self, result: PipelineResult) -> Path | None:
        """Write the .kinship table; a dimension mismatch skips only this file."""
        path = self.config.output.kinship_path
        try:
            write_kinship_table(
                path, result.family_ids, result.individual_ids, result.kinship
            )
        except DimensionMismatchError as e:
            logger.error(f"Kinship table not written: {e}")
            return None
        logger.info(f"Kinship matrix written to {path}")
        return path

    def run_pca(self, result: PipelineResult) -> tuple[PCAResult | None, Path | None]:
        """Eigendecompose the kinship matrix and write the .pca table.

        Returns:
            Tuple of (PCAResult, path), with None entries for whatever step
            failed.
        """
        try:
            pca = decompose_kinship(
                result.kinship, check_memory=self.config.check_memory
            )
        except EigenNonConvergenceError as e:
            logger.error(f"PCA skipped: {e}")
            return None, None

        path = self.config.output.pca_path
        try:
            write_pca_table(path, result.family_ids, result.individual_ids, pca)
        except DimensionMismatchError as e:
            logger.error(f"PCA table not written: {e}")
            return pca, None
        logger.info(f"PCA written to {path}")
        return pca, path

    def run(self) -> PipelineResult:
        """Execute the full kinship pipeline.

        Pipeline steps:
        1. Validate inputs and check memory
        2. Compute kinship (empirical or pedigree)
        3. Write .kinship
        4. Optional PCA and .pca

        Returns:
            PipelineResult with matrix, ids, output paths, counters and timing.
        """
        t_start = time.perf_counter()

        self.validate_inputs()
        self.check_memory_requirements()
        self.config.output.ensure_outdir()

        t_kinship = time.perf_counter()
        result = self.compute_kinship()
        kinship_s = time.perf_counter() - t_kinship

        result.kinship_path = self.write_kinship(result)

        pca_s = 0.0
        if self.config.pca:
            t_pca = time.perf_counter()
            result.pca, result.pca_path = self.run_pca(result)
            pca_s = time.perf_counter() - t_pca

        total_s = time.perf_counter() - t_start
        logger.info(
            f"Kinship complete: {result.n_samples:,} individuals in {total_s:.1f}s"
        )
        result.timing = {"kinship_s": kinship_s, "pca_s": pca_s, "total_s": total_s}
        return result
