"""PLINK binary genotype stream using bed-reader.

The kinship core consumes one dosage vector per site. This module turns a
PLINK fileset (.bed/.bim/.fam) into that stream: windowed chunk reads from
the .bed file, sample inclusion/exclusion by individual id, and missing
calls encoded as -9.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
from bed_reader import open_bed
from loguru import logger

from relkin.core.config import MISSING_DOSAGE as MISSING


@dataclass(frozen=True)
class Site:
    """One variant handed to an estimator.

    Attributes:
        site_id: Variant identifier from the .bim file.
        chromosome: Chromosome name from the .bim file.
        position: Base-pair position from the .bim file.
        dosages: Per-individual dosages (0, 1, 2), -9 for missing.
    """

    site_id: str
    chromosome: str
    position: int
    dosages: np.ndarray


def _bed_file(bfile: Path) -> Path:
    bed_file = Path(f"{bfile}.bed")
    if not bed_file.exists():
        raise FileNotFoundError(f"PLINK .bed file not found: {bed_file}")
    return bed_file


def get_plink_metadata(bfile: Path) -> dict[str, Any]:
    """Read the .fam and .bim columns of a fileset; the .bed is not decoded.

    Args:
        bfile: Fileset prefix, e.g. "data/study" for data/study.bed.

    Returns:
        Dict with the counts ``n_samples`` and ``n_snps`` and the string
        arrays ``fid``, ``iid``, ``sid`` and ``chromosome`` and the integer
        array ``bp_position``.

    Raises:
        FileNotFoundError: If the .bed file is missing.
    """
    with open_bed(_bed_file(bfile)) as bed:
        return {
            "n_samples": bed.iid_count,
            "n_snps": bed.sid_count,
            "fid": np.asarray(bed.fid, dtype=str),
            "iid": np.asarray(bed.iid, dtype=str),
            "sid": np.asarray(bed.sid, dtype=str),
            "chromosome": np.asarray(bed.chromosome, dtype=str),
            "bp_position": np.asarray(bed.bp_position, dtype=np.int64),
        }


def resolve_sample_index(
    iid: np.ndarray,
    keep: Iterable[str] | None = None,
    remove: Iterable[str] | None = None,
) -> np.ndarray:
    """Positions of the individuals to analyze, in file order.

    Args:
        iid: Individual ids from the .fam file.
        keep: If given, only these ids are analyzed.
        remove: Ids excluded after applying ``keep``.

    Returns:
        Sorted integer index array.

    Raises:
        ValueError: If no individual remains.
    """
    mask = np.ones(len(iid), dtype=bool)
    if keep is not None:
        keep = set(keep)
        unknown = keep.difference(iid)
        if unknown:
            logger.warning(f"{len(unknown)} requested ids not found in .fam file")
        mask &= np.isin(iid, list(keep))
    if remove is not None:
        mask &= ~np.isin(iid, list(set(remove)))

    index = np.flatnonzero(mask)
    if index.size == 0:
        raise ValueError("No individuals left after sample inclusion/exclusion")
    if index.size < len(iid):
        logger.info(f"Using {index.size:,} of {len(iid):,} individuals")
    return index


def stream_genotype_chunks(
    bfile: Path,
    chunk_size: int = 10_000,
    sample_index: np.ndarray | None = None,
) -> Iterator[tuple[np.ndarray, int, int]]:
    """Read the .bed file in windows of consecutive variants.

    Only one (individuals x chunk_size) block is decoded at a time, so a
    fileset larger than RAM can be streamed.

    Args:
        bfile: Fileset prefix.
        chunk_size: Variants per window.
        sample_index: Rows to decode, None for every individual.

    Yields:
        (block, start, end): a float64 block with NaN for missing calls,
        covering variants start (inclusive) to end (exclusive).

    Raises:
        FileNotFoundError: If the .bed file is missing.
    """
    with open_bed(_bed_file(bfile)) as bed:
        rows = slice(None) if sample_index is None else sample_index
        for start in range(0, bed.sid_count, chunk_size):
            end = min(start + chunk_size, bed.sid_count)
            block = bed.read(index=np.s_[rows, start:end], dtype=np.float64)
            yield block, start, end


def iter_site_genotypes(
    bfile: Path,
    chunk_size: int = 10_000,
    sample_index: np.ndarray | None = None,
) -> Iterator[Site]:
    """Yield one Site per variant with missing calls encoded as -9.

    Args:
        bfile: Path prefix for PLINK files.
        chunk_size: Number of SNPs read per disk window.
        sample_index: Individuals to include, None for all.
    """
    meta = get_plink_metadata(bfile)
    sid = meta["sid"]
    chromosome = meta["chromosome"]
    position = meta["bp_position"]

    for chunk, start, _end in stream_genotype_chunks(bfile, chunk_size, sample_index):
        chunk = np.where(np.isnan(chunk), MISSING, chunk)
        for offset in range(chunk.shape[1]):
            snp = start + offset
            yield Site(
                site_id=str(sid[snp]),
                chromosome=str(chromosome[snp]),
                position=int(position[snp]),
                dosages=chunk[:, offset],
            )
