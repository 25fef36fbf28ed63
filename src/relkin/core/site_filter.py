"""Per-site quality control applied before kinship accumulation.

A site is skipped when it lies outside the requested genomic ranges, is
non-autosomal, has too many missing calls, has an allele frequency outside
[min_maf, 1 - min_maf], or carries no non-reference call. Checks run in
that order and each skip is counted under the first reason that applies.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

AUTOSOMES = frozenset(str(c) for c in range(1, 23))


class SkipReason(str, Enum):
    """Why a site was left out of the kinship estimate."""

    OUT_OF_RANGE = "out_of_range"
    NON_AUTOSOMAL = "non_autosomal"
    MISSINGNESS = "missingness"
    ALLELE_FREQUENCY = "allele_frequency"
    NON_VARIANT = "non_variant"


def normalize_chromosome(chromosome: str) -> str:
    """Strip a leading "chr" prefix ("chr7" -> "7")."""
    chromosome = str(chromosome).strip()
    if chromosome.lower().startswith("chr"):
        return chromosome[3:]
    return chromosome


@dataclass(frozen=True)
class GenomicRange:
    """A chromosome, optionally narrowed to inclusive base-pair bounds."""

    chromosome: str
    start: int | None = None
    end: int | None = None

    def contains(self, chromosome: str, position: int | None) -> bool:
        if normalize_chromosome(chromosome) != self.chromosome:
            return False
        if self.start is None:
            return True
        return position is not None and self.start <= position <= self.end


def parse_range(text: str) -> GenomicRange:
    """Parse "chr", "chr:pos" or "chr:begin-end" (bounds inclusive).

    Raises:
        ValueError: If the bounds are not integers or begin > end.
    """
    chromosome, _, bounds = text.strip().partition(":")
    chromosome = normalize_chromosome(chromosome)
    if not chromosome:
        raise ValueError(f"Invalid range {text!r}: missing chromosome")
    if not bounds:
        return GenomicRange(chromosome)

    begin, _, end = bounds.partition("-")
    try:
        start = int(begin)
        stop = int(end) if end else start
    except ValueError:
        raise ValueError(f"Invalid range {text!r}: expected chr:begin-end") from None
    if start > stop:
        raise ValueError(f"Invalid range {text!r}: begin exceeds end")
    return GenomicRange(chromosome, start, stop)


def parse_range_list(text: str) -> tuple[GenomicRange, ...]:
    """Parse a comma-separated list such as "1:100-200,2:5000-6000,X"."""
    return tuple(parse_range(part) for part in text.split(",") if part.strip())


@dataclass
class SiteFilterStats:
    """Counters reported in the run summary."""

    n_seen: int = 0
    n_out_of_range: int = 0
    n_non_autosomal: int = 0
    n_missingness: int = 0
    n_allele_frequency: int = 0
    n_non_variant: int = 0
    n_passed: int = 0

    @property
    def n_skipped(self) -> int:
        return (
            self.n_out_of_range
            + self.n_non_autosomal
            + self.n_missingness
            + self.n_allele_frequency
            + self.n_non_variant
        )

    def record(self, reason: SkipReason | None) -> None:
        self.n_seen += 1
        if reason is None:
            self.n_passed += 1
        elif reason is SkipReason.OUT_OF_RANGE:
            self.n_out_of_range += 1
        elif reason is SkipReason.NON_AUTOSOMAL:
            self.n_non_autosomal += 1
        elif reason is SkipReason.MISSINGNESS:
            self.n_missingness += 1
        elif reason is SkipReason.ALLELE_FREQUENCY:
            self.n_allele_frequency += 1
        else:
            self.n_non_variant += 1

    def as_dict(self) -> dict[str, int]:
        return {
            "sites_seen": self.n_seen,
            "sites_out_of_range": self.n_out_of_range,
            "sites_non_autosomal": self.n_non_autosomal,
            "sites_high_missingness": self.n_missingness,
            "sites_allele_frequency": self.n_allele_frequency,
            "sites_non_variant": self.n_non_variant,
            "sites_passed": self.n_passed,
        }


@dataclass(frozen=True)
class SiteFilter:
    """Site QC thresholds.

    Attributes:
        min_maf: Sites with allele frequency below min_maf or above
            1 - min_maf are skipped.
        max_missing: Maximum fraction of individuals with a missing call.
        autosomes_only: Skip sites whose chromosome is not 1-22.
        ranges: Keep only sites inside one of these ranges; empty keeps
            every site.
    """

    min_maf: float = 0.05
    max_missing: float = 0.05
    autosomes_only: bool = True
    ranges: tuple[GenomicRange, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_maf <= 0.5:
            raise ValueError(f"min_maf must be in [0, 0.5], got {self.min_maf}")
        if not 0.0 <= self.max_missing <= 1.0:
            raise ValueError(
                f"max_missing must be in [0, 1], got {self.max_missing}"
            )

    def check(
        self,
        dosages: np.ndarray,
        chromosome: str | None = None,
        position: int | None = None,
    ) -> SkipReason | None:
        """Return the reason a site is skipped, or None if it passes.

        Args:
            dosages: Per-individual dosages, negative for missing.
            chromosome: Chromosome name, or None to skip the range and
                autosome checks.
            position: Base-pair position, needed for bounded ranges.
        """
        if (
            self.ranges
            and chromosome is not None
            and not any(r.contains(chromosome, position) for r in self.ranges)
        ):
            return SkipReason.OUT_OF_RANGE

        if (
            self.autosomes_only
            and chromosome is not None
            and normalize_chromosome(chromosome) not in AUTOSOMES
        ):
            return SkipReason.NON_AUTOSOMAL

        called = dosages[dosages >= 0]
        n_missing = len(dosages) - len(called)
        if n_missing > self.max_missing * len(dosages):
            return SkipReason.MISSINGNESS

        if len(called) == 0:
            return SkipReason.ALLELE_FREQUENCY
        af = 0.5 * float(called.sum()) / len(called)
        if af < self.min_maf or af > 1.0 - self.min_maf:
            return SkipReason.ALLELE_FREQUENCY

        if not np.any(called != 0):
            return SkipReason.NON_VARIANT

        return None
