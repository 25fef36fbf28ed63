"""Tests for pedigree file loading."""

from pathlib import Path

import pytest

from relkin.core import PedigreeError
from relkin.io import read_pedigree
from relkin.kinship import compute_pedigree_kinship


class TestReadPedigree:
    """Tests for read_pedigree()."""

    def test_reads_first_four_columns(self, trio_ped: Path):
        ped = read_pedigree(trio_ped)
        assert ped.person_ids == ["dad", "mom", "kid1", "kid2"]
        assert ped[2].father == "dad"
        assert ped[2].mother == "mom"
        assert ped[0].is_founder

    @pytest.mark.parametrize("unknown", ["0", "-9", "NA", "."])
    def test_unknown_parent_codes(self, tmp_path: Path, unknown: str):
        path = tmp_path / "p.ped"
        path.write_text(f"f a {unknown} {unknown}\n")
        assert read_pedigree(path)[0].is_founder

    def test_undeclared_parents_become_founders(self, tmp_path: Path):
        path = tmp_path / "p.ped"
        path.write_text("f kid dad mom\n")
        ped = read_pedigree(path)
        assert ped.person_ids == ["kid", "dad", "mom"]
        assert ped[1].is_founder
        assert compute_pedigree_kinship(ped)[0, 1] == 0.25

    def test_comments_ignored(self, tmp_path: Path):
        path = tmp_path / "p.ped"
        path.write_text("# FID IID PAT MAT\nf a 0 0\n")
        assert read_pedigree(path).person_ids == ["a"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            read_pedigree(tmp_path / "absent.ped")

    def test_duplicate_row(self, tmp_path: Path):
        path = tmp_path / "p.ped"
        path.write_text("f a 0 0\nf a 0 0\n")
        with pytest.raises(PedigreeError):
            read_pedigree(path)
