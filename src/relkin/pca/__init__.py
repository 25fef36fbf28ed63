"""Principal component analysis of kinship matrices."""

from relkin.pca.eigen import (
    PCAResult,
    ScipyEigenSolver,
    SymmetricEigenSolver,
    decompose_kinship,
)
from relkin.pca.io import write_pca_table

__all__ = [
    "PCAResult",
    "ScipyEigenSolver",
    "SymmetricEigenSolver",
    "decompose_kinship",
    "write_pca_table",
]
