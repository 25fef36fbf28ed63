"""Tests for .pca table output."""

from pathlib import Path

import numpy as np
import pytest

from relkin.core import DimensionMismatchError
from relkin.pca import PCAResult, write_pca_table


@pytest.fixture
def pca_result() -> PCAResult:
    return PCAResult(
        eigenvalues=np.array([3.0, 1.0]),
        eigenvectors=np.array([[0.6, -0.8], [0.8, 0.6]]),
    )


class TestWritePcaTable:
    """Tests for write_pca_table()."""

    def test_layout(self, tmp_path: Path, pca_result: PCAResult):
        """Row i: ids, i-th largest eigenvalue, loadings of individual i."""
        path = write_pca_table(tmp_path / "r.pca", ["f1", "f2"], ["a", "b"], pca_result)
        lines = path.read_text().splitlines()

        assert lines[0] == "FID\tIID\tLambda\tU1\tU2"
        assert lines[1] == "f1\ta\t3\t0.6\t-0.8"
        assert lines[2] == "f2\tb\t1\t0.8\t0.6"

    def test_id_length_mismatch(self, tmp_path: Path, pca_result: PCAResult):
        path = tmp_path / "r.pca"
        with pytest.raises(DimensionMismatchError):
            write_pca_table(path, ["f1"], ["a", "b"], pca_result)
        assert not path.exists()

    def test_component_count_mismatch(self, tmp_path: Path, pca_result: PCAResult):
        path = tmp_path / "r.pca"
        with pytest.raises(DimensionMismatchError):
            write_pca_table(path, ["f1", "f2", "f3"], ["a", "b", "c"], pca_result)
        assert not path.exists()
