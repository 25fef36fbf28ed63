"""Kinship estimation.

- empirical: streaming IBS, IBS-impute and Balding-Nicols estimators
- pedigree: expected kinship from a declared pedigree
- compute: drivers that stream sites into an estimator
- io: tab-delimited .kinship tables
"""

from relkin.kinship.compute import (
    AccumulationSummary,
    StreamingKinshipResult,
    accumulate_kinship,
    compute_empirical_kinship,
    compute_kinship_streaming,
)
from relkin.kinship.empirical import (
    BaldingNicolsKinship,
    IBSImputeKinship,
    IBSKinship,
    KinshipEstimator,
    create_estimator,
    matrices_held,
)
from relkin.kinship.io import read_kinship_table, write_kinship_table
from relkin.kinship.pedigree import Pedigree, Person, compute_pedigree_kinship

__all__ = [
    "AccumulationSummary",
    "BaldingNicolsKinship",
    "IBSImputeKinship",
    "IBSKinship",
    "KinshipEstimator",
    "Pedigree",
    "Person",
    "StreamingKinshipResult",
    "accumulate_kinship",
    "compute_empirical_kinship",
    "compute_kinship_streaming",
    "compute_pedigree_kinship",
    "create_estimator",
    "matrices_held",
    "read_kinship_table",
    "write_kinship_table",
]
