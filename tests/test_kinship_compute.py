"""Tests for the kinship computation drivers."""

import numpy as np
import pytest

from relkin.core import GenomicRange, KinshipConfig, KinshipMethod, SiteFilter
from relkin.io import Site
from relkin.kinship import (
    IBSKinship,
    accumulate_kinship,
    compute_empirical_kinship,
    compute_kinship_streaming,
)


def _passing_columns(genotypes: np.ndarray, site_filter: SiteFilter) -> np.ndarray:
    coded = np.where(np.isnan(genotypes), -9.0, genotypes)
    keep = [
        j for j in range(coded.shape[1]) if site_filter.check(coded[:, j], "1") is None
    ]
    return genotypes[:, keep]


class TestAccumulateKinship:
    """Tests for accumulate_kinship()."""

    def test_counts_used_and_rejected(self):
        est = IBSKinship()
        sites = [
            Site("rs1", "1", 101, np.array([0.0, 1.0, 2.0])),
            Site("rs2", "1", 102, np.array([0.0, 3.0, 2.0])),
            Site("rs3", "1", 103, np.array([0.0, 0.0, -9.0])),
        ]
        summary = accumulate_kinship(est, sites)

        assert summary.n_sites_used == 2
        assert summary.n_sites_rejected == 1
        assert summary.rejected_site_ids == ["rs2"]
        assert est.get_kinship()[0, 1] == 1.5

    def test_plain_vectors(self):
        est = IBSKinship()
        summary = accumulate_kinship(est, [[0, 1], [9, 0], [1, 1]])
        assert summary.n_sites_used == 2
        assert summary.rejected_site_ids == ["1"]

    def test_empty_stream(self):
        est = IBSKinship()
        summary = accumulate_kinship(est, [])
        assert summary.n_sites_used == 0
        assert est.n_sites == 0


class TestComputeEmpiricalKinship:
    """Tests for compute_empirical_kinship()."""

    def test_hand_computed(self):
        X = np.array([[0, 0], [1, 0], [2, np.nan]], dtype=np.float64)
        K = compute_empirical_kinship(X)
        assert K[0, 1] == 1.5
        assert K.is_symmetric()

    def test_zero_usable_sites_gives_zero_matrix(self):
        """Every site rejected: an all-zero n x n matrix, not an error."""
        X = np.full((3, 2), 3.0)
        K = compute_empirical_kinship(X)
        assert K.shape == (3, 3)
        assert not K.data.any()

    def test_not_two_dimensional(self):
        with pytest.raises(ValueError, match="2-D"):
            compute_empirical_kinship(np.zeros(3))


class TestComputeKinshipStreaming:
    """Tests for compute_kinship_streaming() over PLINK files."""

    @pytest.mark.parametrize(
        "method",
        [KinshipMethod.IBS, KinshipMethod.IBS_IMPUTE, KinshipMethod.BALDING_NICOLS],
    )
    def test_matches_in_memory(self, plink_writer, random_genotypes, method):
        """Streaming equals the in-memory path over the sites that pass QC."""
        g = random_genotypes.copy()
        g[0, 0] = np.nan
        bfile = plink_writer(g)
        config = KinshipConfig(method=method)

        result = compute_kinship_streaming(
            bfile, config, chunk_size=17, show_progress=False
        )
        expected = compute_empirical_kinship(_passing_columns(g, SiteFilter()), config)

        np.testing.assert_allclose(result.kinship.data, expected.data, atol=1e-12)
        assert result.summary.n_sites_used == result.filter_stats.n_passed

    def test_ids_and_counters(self, sample_plink_data, random_genotypes):
        result = compute_kinship_streaming(sample_plink_data, show_progress=False)
        n_samples, n_snps = random_genotypes.shape

        assert result.individual_ids == [f"ind{i}" for i in range(n_samples)]
        assert result.family_ids == [f"fam{i}" for i in range(n_samples)]
        assert result.filter_stats.n_seen == n_snps
        assert result.kinship.shape == (n_samples, n_samples)

    def test_non_autosomal_sites_skipped(self, plink_writer, random_genotypes):
        g = random_genotypes[:, :10]
        chromosome = ["1"] * 6 + ["23"] * 2 + ["X", "MT"]
        bfile = plink_writer(g, chromosome=chromosome)

        result = compute_kinship_streaming(bfile, show_progress=False)
        assert result.filter_stats.n_non_autosomal == 4

    def test_keep_and_remove(self, plink_writer, random_genotypes):
        bfile = plink_writer(random_genotypes)
        keep = [f"ind{i}" for i in range(10)]

        result = compute_kinship_streaming(
            bfile, keep=keep, remove=["ind3"], show_progress=False
        )
        rows = [i for i in range(10) if i != 3]
        expected = compute_empirical_kinship(
            _passing_columns(random_genotypes[rows], SiteFilter())
        )

        assert result.individual_ids == [f"ind{i}" for i in rows]
        np.testing.assert_allclose(result.kinship.data, expected.data)

    def test_ranges_restrict_sites(self, plink_writer, random_genotypes):
        """Only sites at positions 1-50 on chromosome 1 are used."""
        bfile = plink_writer(random_genotypes)
        site_filter = SiteFilter(ranges=(GenomicRange("1", 1, 50),))

        result = compute_kinship_streaming(
            bfile, site_filter=site_filter, show_progress=False
        )
        expected = compute_empirical_kinship(
            _passing_columns(random_genotypes[:, :50], SiteFilter())
        )

        assert result.filter_stats.n_out_of_range == 150
        np.testing.assert_allclose(result.kinship.data, expected.data)

    def test_update_ids_after_keep(self, plink_writer, random_genotypes):
        """Ids are renamed after keep, so keep uses the file ids."""
        bfile = plink_writer(random_genotypes)

        result = compute_kinship_streaming(
            bfile,
            keep=["ind1", "ind2"],
            update_ids={"ind2": "carol", "ind9": "dave"},
            show_progress=False,
        )

        assert result.individual_ids == ["ind1", "carol"]
        assert result.family_ids == ["fam1", "fam2"]

    def test_everything_filtered(self, plink_writer):
        """No site passes: the matrix is all zero with the right size."""
        bfile = plink_writer(np.zeros((4, 5)))
        result = compute_kinship_streaming(bfile, show_progress=False)

        assert result.filter_stats.n_allele_frequency == 5
        assert result.summary.n_sites_used == 0
        np.testing.assert_array_equal(result.kinship.data, np.zeros((4, 4)))

    def test_missing_bed(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            compute_kinship_streaming(tmp_path / "absent", show_progress=False)

    def test_memory_check_raises(self, sample_plink_data, monkeypatch):
        monkeypatch.setattr(
            "relkin.kinship.compute.estimate_kinship_memory",
            lambda n_samples, n_accumulators=1: 1e9,
        )
        with pytest.raises(MemoryError):
            compute_kinship_streaming(sample_plink_data, show_progress=False)
