"""relkin: kinship matrices from genotypes and pedigrees.

relkin builds n x n kinship matrices for a cohort, either empirically from
PLINK genotypes (identity-by-state or Balding-Nicols) or as expected
kinship from a declared pedigree, and optionally eigendecomposes the result
into principal components.

Key features:
- Streaming estimators: memory is O(n^2) regardless of the number of sites
- Site QC (allele frequency, missingness, autosomes) before estimation
- Tab-delimited .kinship and .pca outputs

Example:
    >>> from relkin import run_kinship
    >>> result = run_kinship(bfile="data/my_study", method="bn", pca=True)
    >>> print(f"{result.n_samples} individuals in {result.timing['total_s']:.1f}s")
"""

import sys
from importlib.metadata import version

from loguru import logger

__version__ = version("relkin")

# Configure loguru with sensible defaults on import
# Users can override by calling logger.remove()/add()
logger.remove()
logger.add(
    sys.stdout,
    level="INFO",
    format="{time:HH:mm:ss} | <level>{level: <8}</level> | {message}",
    colorize=True,
)

from relkin.api import run_kinship  # noqa: E402
from relkin.pipeline import PipelineResult  # noqa: E402

__all__ = ["run_kinship", "PipelineResult", "__version__"]
