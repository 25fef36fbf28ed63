"""PCA table output.

Header ``FID\\tIID\\tLambda\\tU1\\tU2...``; row i holds individual i's ids,
the i-th largest eigenvalue, then individual i's loading on each component
in descending-eigenvalue order. Values use C ``%g`` formatting.
"""

from collections.abc import Sequence
from pathlib import Path

from relkin.core.errors import DimensionMismatchError
from relkin.pca.eigen import PCAResult


def write_pca_table(
    path: Path,
    family_ids: Sequence[str],
    individual_ids: Sequence[str],
    result: PCAResult,
) -> Path:
    """Write eigenvalues and loadings as a tab-delimited table.

    Args:
        path: Output file path (typically <prefix>.pca).
        family_ids: Family id per individual.
        individual_ids: Individual id per individual, in matrix order.
        result: Decomposition with descending eigenvalues.

    Returns:
        The written path.

    Raises:
        DimensionMismatchError: If the id lists differ in length or do not
            match the number of components. Nothing is written.
    """
    n = len(individual_ids)
    if len(family_ids) != n:
        raise DimensionMismatchError(
            f"{len(family_ids)} family ids but {n} individual ids"
        )
    if result.eigenvectors.shape != (n, n) or result.n_components != n:
        raise DimensionMismatchError(
            f"PCA result has {result.n_components} components and eigenvector "
            f"shape {result.eigenvectors.shape}, expected {n} individuals"
        )

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        header = ["FID", "IID", "Lambda"] + [f"U{k + 1}" for k in range(n)]
        f.write("\t".join(header) + "\n")
        for i in range(n):
            values = [f"{result.eigenvalues[i]:g}"]
            values += [f"{result.eigenvectors[i, k]:g}" for k in range(n)]
            f.write("\t".join([family_ids[i], individual_ids[i], *values]) + "\n")

    return path
