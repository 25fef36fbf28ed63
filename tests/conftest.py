"""Pytest fixtures for the relkin test suite."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest
from bed_reader import to_bed


def write_plink(
    prefix: Path,
    genotypes: np.ndarray,
    chromosome: list[str] | None = None,
    iid: list[str] | None = None,
    fid: list[str] | None = None,
) -> Path:
    """Write a PLINK fileset from an (n_samples, n_snps) dosage matrix.

    NaN marks a missing call. Returns the path prefix (no extension).
    """
    n_samples, n_snps = genotypes.shape
    iid = iid or [f"ind{i}" for i in range(n_samples)]
    fid = fid or [f"fam{i}" for i in range(n_samples)]
    chromosome = chromosome or ["1"] * n_snps
    to_bed(
        f"{prefix}.bed",
        genotypes.astype(np.float32),
        properties={
            "fid": fid,
            "iid": iid,
            "sid": [f"rs{j}" for j in range(n_snps)],
            "chromosome": chromosome,
            "bp_position": list(range(1, n_snps + 1)),
        },
    )
    return prefix


@pytest.fixture
def plink_writer(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing PLINK filesets under tmp_path."""

    def _write(genotypes: np.ndarray, name: str = "study", **kwargs) -> Path:
        return write_plink(tmp_path / name, np.asarray(genotypes, float), **kwargs)

    return _write


@pytest.fixture
def random_genotypes() -> np.ndarray:
    """Hardy-Weinberg genotypes (30 individuals x 200 sites), no missing calls."""
    rng = np.random.default_rng(42)
    n_samples, n_snps = 30, 200
    p = rng.uniform(0.15, 0.5, n_snps)
    return rng.binomial(2, p, size=(n_samples, n_snps)).astype(np.float64)


@pytest.fixture
def sample_plink_data(plink_writer, random_genotypes) -> Path:
    """PLINK prefix holding random_genotypes with a few missing calls."""
    genotypes = random_genotypes.copy()
    genotypes[0, 0] = np.nan
    genotypes[5, 10] = np.nan
    return plink_writer(genotypes)


@pytest.fixture
def trio_ped(tmp_path: Path) -> Path:
    """Pedigree file: two founders and their child, plus a sibling."""
    path = tmp_path / "trio.ped"
    path.write_text(
        "f1 dad 0 0 1 -9\n"
        "f1 mom 0 0 2 -9\n"
        "f1 kid1 dad mom 1 -9\n"
        "f1 kid2 dad mom 2 -9\n"
    )
    return path


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Create temporary output directory for test results."""
    out = tmp_path / "output"
    out.mkdir()
    return out
