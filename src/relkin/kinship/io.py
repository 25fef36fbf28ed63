"""Kinship table I/O.

Format:
- Header ``FID\\tIID\\t<iid_1>\\t<iid_2>...``
- One row per individual: family id, individual id, then the full row of
  kinship values (diagonal included)
- Values formatted like C ``%g`` (6 significant digits)
"""

from collections.abc import Sequence
from pathlib import Path

import numpy as np

from relkin.core.errors import DimensionMismatchError
from relkin.core.matrix import SymmetricMatrix


def _check_dimensions(
    family_ids: Sequence[str], individual_ids: Sequence[str], K: np.ndarray
) -> None:
    if len(family_ids) != len(individual_ids):
        raise DimensionMismatchError(
            f"{len(family_ids)} family ids but {len(individual_ids)} individual ids"
        )
    if K.ndim != 2 or K.shape[0] != K.shape[1]:
        raise DimensionMismatchError(f"Kinship matrix must be square, got {K.shape}")
    if K.shape[0] != len(individual_ids):
        raise DimensionMismatchError(
            f"Kinship matrix dimension {K.shape[0]} does not match "
            f"{len(individual_ids)} individuals"
        )


def write_kinship_table(
    path: Path,
    family_ids: Sequence[str],
    individual_ids: Sequence[str],
    matrix: SymmetricMatrix | np.ndarray,
) -> Path:
    """Write a kinship matrix with family and individual ids.

    Args:
        path: Output file path (typically <prefix>.kinship).
        family_ids: Family id per individual.
        individual_ids: Individual id per individual, in matrix order.
        matrix: Kinship matrix (n x n).

    Returns:
        The written path.

    Raises:
        DimensionMismatchError: If the id lists differ in length, the matrix
            is not square, or its size differs from the number of
            individuals. Nothing is written.

    Example:
        >>> write_kinship_table(Path("out/result.kinship"), fids, iids, K)
    """
    K = matrix.data if isinstance(matrix, SymmetricMatrix) else np.asarray(matrix)
    _check_dimensions(family_ids, individual_ids, K)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        f.write("\t".join(["FID", "IID", *individual_ids]) + "\n")
        for i in range(K.shape[0]):
            values = [f"{K[i, j]:g}" for j in range(K.shape[1])]
            f.write("\t".join([family_ids[i], individual_ids[i], *values]) + "\n")

    return path


def read_kinship_table(
    path: Path, n_samples: int | None = None
) -> tuple[list[str], list[str], np.ndarray]:
    """Read a kinship table written by write_kinship_table().

    Args:
        path: Path to the .kinship file.
        n_samples: Expected number of individuals (optional validation).

    Returns:
        Tuple of (family_ids, individual_ids, K).

    Raises:
        DimensionMismatchError: If the table is ragged or not square, rows
            disagree with the header, or the size differs from n_samples.
        ValueError: If the FID/IID header is missing or the matrix is not
            symmetric.
    """
    try:
        table = np.loadtxt(path, dtype=str, delimiter="\t", comments=None, ndmin=2)
    except ValueError as e:
        raise DimensionMismatchError(f"Ragged kinship table {path}: {e}") from None
    if table.shape[1] < 2 or table[0, :2].tolist() != ["FID", "IID"]:
        raise ValueError(f"Missing FID/IID header in {path}")

    column_ids = table[0, 2:].tolist()
    family_ids = table[1:, 0].tolist()
    individual_ids = table[1:, 1].tolist()
    K = table[1:, 2:].astype(np.float64)
    _check_dimensions(family_ids, individual_ids, K)
    if individual_ids != column_ids:
        raise DimensionMismatchError(
            f"Row individual ids do not match header columns in {path}"
        )

    if n_samples is not None and K.shape[0] != n_samples:
        raise DimensionMismatchError(
            f"Kinship matrix dimension {K.shape[0]} does not match "
            f"expected n_samples={n_samples}"
        )

    # %g keeps 6 significant digits
    if not np.allclose(K, K.T, rtol=1e-5, atol=1e-6):
        raise ValueError("Kinship matrix is not symmetric")

    return family_ids, individual_ids, K
