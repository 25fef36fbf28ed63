"""Configuration dataclasses for relkin.

This module contains the value objects handed to the kinship core and the
output layer. Nothing in the core reads ambient state: the estimator choice
and its options travel in a KinshipConfig, output locations in an
OutputConfig.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# Dosage code for a missing call; any negative dosage is treated as missing.
MISSING_DOSAGE = -9.0


class KinshipMethod(str, Enum):
    """Empirical kinship estimator selected at startup."""

    IBS = "ibs"
    IBS_IMPUTE = "ibs-impute"
    BALDING_NICOLS = "bn"


@dataclass(frozen=True)
class KinshipConfig:
    """Configuration for empirical kinship estimation.

    Attributes:
        method: Which estimator to construct.
        double_count_sites: Only used by the IBS-with-imputation estimator.
            When True the site counter advances twice per incorporated site,
            reproducing vcf2kinship output (every value halved). Default False
            normalizes by the true site count.
    """

    method: KinshipMethod = KinshipMethod.IBS
    double_count_sites: bool = False


@dataclass
class OutputConfig:
    """Configuration for output files and directories.

    Attributes:
        outdir: Output directory for result files. Created if it doesn't exist.
        prefix: Prefix for output filenames (e.g., "result" produces
            "result.kinship").
        verbose: Enable verbose/debug output to console.
    """

    outdir: Path = field(default_factory=lambda: Path("output"))
    prefix: str = "result"
    verbose: bool = False

    @property
    def kinship_path(self) -> Path:
        """Path to the tab-delimited kinship table ({outdir}/{prefix}.kinship)."""
        return self.outdir / f"{self.prefix}.kinship"

    @property
    def pca_path(self) -> Path:
        """Path to the PCA table ({outdir}/{prefix}.pca)."""
        return self.outdir / f"{self.prefix}.pca"

    @property
    def log_path(self) -> Path:
        """Path to the run log file.

        Returns:
            Path to {outdir}/{prefix}.log.txt
        """
        return self.outdir / f"{self.prefix}.log.txt"

    def ensure_outdir(self) -> None:
        """Create output directory if it doesn't exist."""
        self.outdir.mkdir(parents=True, exist_ok=True)
