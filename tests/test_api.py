"""Tests for the single-call run_kinship() API."""

from pathlib import Path

import pytest

import relkin
from relkin import run_kinship


class TestKinshipApi:
    """Tests for relkin.run_kinship()."""

    def test_empirical(self, sample_plink_data, tmp_path: Path):
        result = run_kinship(
            sample_plink_data,
            method="ibs-impute",
            output_dir=tmp_path / "out",
            output_prefix="api",
            show_progress=False,
        )
        assert result.kinship_path == tmp_path / "out" / "api.kinship"
        assert result.kinship_path.exists()
        assert result.kinship.is_symmetric()

    def test_pedigree_with_pca(self, trio_ped, tmp_path: Path):
        result = run_kinship(ped=trio_ped, pca=True, output_dir=tmp_path)
        assert result.pca_path.exists()
        assert result.pca.eigenvalues.sum() == pytest.approx(2.0)

    def test_unknown_method(self, sample_plink_data, tmp_path: Path):
        with pytest.raises(ValueError):
            run_kinship(sample_plink_data, method="grm", output_dir=tmp_path)

    def test_requires_input(self, tmp_path: Path):
        with pytest.raises(ValueError, match="Exactly one"):
            run_kinship(output_dir=tmp_path)


def test_kinship_subpackage_not_shadowed():
    """The top-level entry point leaves relkin.kinship as the subpackage."""
    import relkin.kinship as kinship_pkg

    assert relkin.kinship is kinship_pkg
    assert hasattr(kinship_pkg, "IBSKinship")
    assert hasattr(relkin.kinship.compute, "estimate_kinship_memory")


def test_ranges_and_update_ids(sample_plink_data, tmp_path: Path):
    result = run_kinship(
        sample_plink_data,
        ranges="1:1-20,1:101-120",
        update_ids={"ind0": "first"},
        output_dir=tmp_path,
        show_progress=False,
    )
    assert result.filter_stats.n_out_of_range == 160
    assert result.individual_ids[0] == "first"
    header = result.kinship_path.read_text().splitlines()[0]
    assert header.startswith("FID\tIID\tfirst\tind1\t")
