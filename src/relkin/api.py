"""Top-level kinship API for relkin.

Provides a single-call entry point for a complete kinship run: stream
genotypes (or read a pedigree), compute kinship, write the .kinship table
and optionally the .pca table.

Example:
    >>> from relkin import run_kinship
    >>> result = run_kinship(bfile="data/my_study", method="bn", pca=True)
    >>> print(result.kinship_path, result.pca_path)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path

from relkin.core.config import KinshipMethod
from relkin.core.site_filter import GenomicRange, parse_range_list
from relkin.pipeline import PipelineConfig, PipelineResult, PipelineRunner


def run_kinship(
    bfile: str | Path | None = None,
    *,
    ped: str | Path | None = None,
    method: str | KinshipMethod = KinshipMethod.IBS,
    pca: bool = False,
    min_maf: float = 0.05,
    max_miss: float = 0.05,
    keep: Iterable[str] | None = None,
    remove: Iterable[str] | None = None,
    ranges: str | Iterable[GenomicRange] = (),
    update_ids: Mapping[str, str] | None = None,
    double_count_sites: bool = False,
    output_dir: str | Path = "output",
    output_prefix: str = "result",
    chunk_size: int = 10_000,
    check_memory: bool = True,
    show_progress: bool = True,
) -> PipelineResult:
    """Compute a kinship matrix in a single call.

    Equivalent to the CLI ``relkin empirical`` (with ``bfile``) or
    ``relkin pedigree`` (with ``ped``) command as a Python function.

    Args:
        bfile: PLINK binary file prefix (without .bed/.bim/.fam extension).
        ped: Pedigree table (FID, IID, father, mother columns). Mutually
            exclusive with ``bfile``.
        method: Empirical estimator: "ibs", "ibs-impute" or "bn".
        pca: If True, also write the principal components table.
        min_maf: Minimum allele frequency for a site to be used.
        max_miss: Maximum fraction of missing calls for a site to be used.
        keep: Individual ids to include.
        remove: Individual ids to exclude.
        ranges: Genomic ranges to restrict sites to, as GenomicRange
            objects or a comma-separated "chr:begin-end" string.
        update_ids: Old individual id -> new id for the output tables.
        double_count_sites: Halve IBS-impute values as vcf2kinship does.
        output_dir: Directory for output files (created if needed).
        output_prefix: Prefix for output filenames.
        chunk_size: SNPs per disk read.
        check_memory: If True, check available memory before computation.
        show_progress: If True, show progress bars.

    Returns:
        PipelineResult with the matrix, ids, output paths and timing.

    Raises:
        FileNotFoundError: If an input file does not exist.
        ValueError: If neither or both inputs are given, or a threshold or
            method is invalid.
        PedigreeError: If the pedigree is malformed.
        MemoryError: If check_memory=True and insufficient memory available.
    """
    if isinstance(ranges, str):
        ranges = parse_range_list(ranges)
    config = PipelineConfig(
        bfile=Path(bfile) if bfile is not None else None,
        ped=Path(ped) if ped is not None else None,
        method=KinshipMethod(method),
        double_count_sites=double_count_sites,
        min_maf=min_maf,
        max_miss=max_miss,
        keep=list(keep) if keep is not None else None,
        remove=list(remove) if remove is not None else None,
        ranges=tuple(ranges),
        update_ids=dict(update_ids) if update_ids is not None else None,
        pca=pca,
        output_dir=Path(output_dir),
        output_prefix=output_prefix,
        chunk_size=chunk_size,
        check_memory=check_memory,
        show_progress=show_progress,
    )
    return PipelineRunner(config).run()
