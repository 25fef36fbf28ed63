"""Tests for relkin CLI."""

import json
from pathlib import Path

import pytest
import typer
from loguru import logger
from typer.testing import CliRunner

import relkin.cli
from relkin.cli import app
from relkin.core.site_filter import GenomicRange

runner = CliRunner()


def test_cli_help():
    """--help shows global options and both commands."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "-outdir" in result.output
    assert "empirical" in result.output
    assert "pedigree" in result.output


def test_cli_version():
    """--version shows version number."""
    import relkin

    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert relkin.__version__ in result.output


def test_cli_empirical_help():
    result = runner.invoke(app, ["empirical", "--help"])
    assert result.exit_code == 0
    assert "-bfile" in result.output
    assert "--method" in result.output
    assert "--pca" in result.output


def test_cli_empirical_writes_outputs(sample_plink_data: Path, tmp_path: Path):
    """empirical writes .kinship, .pca and the run log."""
    outdir = tmp_path / "output"

    result = runner.invoke(
        app,
        [
            "-outdir",
            str(outdir),
            "-o",
            "study",
            "empirical",
            "-bfile",
            str(sample_plink_data),
            "--method",
            "bn",
            "--pca",
            "--no-progress",
        ],
    )

    assert result.exit_code == 0, result.output
    assert (outdir / "study.kinship").exists()
    assert (outdir / "study.pca").exists()

    log_content = (outdir / "study.log.txt").read_text()
    assert "relkin" in log_content
    assert "method = bn" in log_content
    assert "n_samples = 30" in log_content
    assert "sites_seen = 200" in log_content
    assert "sites_rejected = 0" in log_content
    assert "##" in log_content


def test_cli_empirical_keep_remove(sample_plink_data: Path, tmp_path: Path):
    keep_file = tmp_path / "keep.txt"
    keep_file.write_text("ind0\nind1\nind2\nind3\n")
    outdir = tmp_path / "output"

    result = runner.invoke(
        app,
        [
            "-outdir",
            str(outdir),
            "empirical",
            "-bfile",
            str(sample_plink_data),
            "--keep-file",
            str(keep_file),
            "--remove",
            "ind2,ind3",
            "--min-maf",
            "0.0",
            "--max-miss",
            "1.0",
            "--no-progress",
        ],
    )

    assert result.exit_code == 0, result.output
    header = (outdir / "result.kinship").read_text().splitlines()[0]
    assert header == "FID\tIID\tind0\tind1"


def test_cli_empirical_range(sample_plink_data: Path, tmp_path: Path):
    """--range and --range-file restrict the sites that are used."""
    range_file = tmp_path / "ranges.txt"
    range_file.write_text("# chr:begin-end\n1:151-200\n")
    outdir = tmp_path / "output"

    result = runner.invoke(
        app,
        [
            "-outdir",
            str(outdir),
            "empirical",
            "-bfile",
            str(sample_plink_data),
            "--range",
            "1:1-50,2:1-1000",
            "--range-file",
            str(range_file),
            "--min-maf",
            "0.0",
            "--max-miss",
            "1.0",
            "--no-progress",
        ],
    )

    assert result.exit_code == 0, result.output
    log_content = (outdir / "result.log.txt").read_text()
    assert "ranges = 3" in log_content
    assert "sites_out_of_range = 100" in log_content


def test_cli_empirical_bad_range(sample_plink_data: Path, tmp_path: Path):
    result = runner.invoke(
        app,
        [
            "-outdir",
            str(tmp_path),
            "empirical",
            "-bfile",
            str(sample_plink_data),
            "--range",
            "1:200-100",
        ],
    )
    assert result.exit_code == 1
    assert "Invalid range" in result.output


def test_cli_empirical_update_id(sample_plink_data: Path, tmp_path: Path):
    id_map = tmp_path / "ids.txt"
    id_map.write_text("ind0 alice\nind1 bob\nnobody carol\n")
    outdir = tmp_path / "output"

    result = runner.invoke(
        app,
        [
            "-outdir",
            str(outdir),
            "empirical",
            "-bfile",
            str(sample_plink_data),
            "--keep",
            "ind0,ind1,ind2",
            "--update-id",
            str(id_map),
            "--no-progress",
        ],
    )

    assert result.exit_code == 0, result.output
    lines = (outdir / "result.kinship").read_text().splitlines()
    assert lines[0] == "FID\tIID\talice\tbob\tind2"
    assert lines[1].split("\t")[:2] == ["fam0", "alice"]


def test_cli_empirical_missing_update_id_file(sample_plink_data: Path, tmp_path: Path):
    result = runner.invoke(
        app,
        [
            "empirical",
            "-bfile",
            str(sample_plink_data),
            "--update-id",
            str(tmp_path / "nope.txt"),
        ],
    )
    assert result.exit_code == 1
    assert "file not found" in result.output


@pytest.mark.parametrize(
    ("flag", "expected"), [([], True), (["--no-progress"], False)]
)
def test_cli_empirical_progress_flag(
    sample_plink_data: Path, monkeypatch, flag: list[str], expected: bool
):
    seen = []

    def fake_run(config):
        seen.append(config)
        raise typer.Exit(code=0)

    monkeypatch.setattr(relkin.cli, "_run", fake_run)
    result = runner.invoke(
        app, ["empirical", "-bfile", str(sample_plink_data), *flag]
    )

    assert result.exit_code == 0, result.output
    assert seen[0].show_progress is expected
    assert seen[0].ranges == ()
    assert seen[0].update_ids is None


def test_cli_range_flags_reach_config(sample_plink_data: Path, monkeypatch):
    seen = []

    def fake_run(config):
        seen.append(config)
        raise typer.Exit(code=0)

    monkeypatch.setattr(relkin.cli, "_run", fake_run)
    runner.invoke(
        app, ["empirical", "-bfile", str(sample_plink_data), "--range", "X:5-9"]
    )

    assert seen[0].ranges == (GenomicRange("X", 5, 9),)


def test_cli_log_file(sample_plink_data: Path, tmp_path: Path):
    """--log-file writes every log record as a JSON line."""
    log_file = tmp_path / "run.jsonl"
    result = runner.invoke(
        app,
        [
            "--log-file",
            str(log_file),
            "-outdir",
            str(tmp_path / "output"),
            "empirical",
            "-bfile",
            str(sample_plink_data),
            "--no-progress",
        ],
    )

    assert result.exit_code == 0, result.output
    logger.remove()
    records = [json.loads(line) for line in log_file.read_text().splitlines()]
    messages = [r["record"]["message"] for r in records]
    assert any("Computing empirical kinship" in m for m in messages)
    assert {r["record"]["level"]["name"] for r in records} >= {"INFO", "DEBUG"}


def test_cli_empirical_invalid_bfile(tmp_path: Path):
    """Missing PLINK files exit with code 1 and an error message."""
    result = runner.invoke(
        app,
        ["-outdir", str(tmp_path), "empirical", "-bfile", str(tmp_path / "nope")],
    )
    assert result.exit_code == 1
    assert "Error" in result.output


def test_cli_empirical_invalid_method(sample_plink_data: Path):
    result = runner.invoke(
        app, ["empirical", "-bfile", str(sample_plink_data), "--method", "grm"]
    )
    assert result.exit_code != 0


def test_cli_pedigree(trio_ped: Path, tmp_path: Path):
    outdir = tmp_path / "output"
    result = runner.invoke(
        app, ["-outdir", str(outdir), "pedigree", "--ped", str(trio_ped), "--pca"]
    )

    assert result.exit_code == 0, result.output
    lines = (outdir / "result.kinship").read_text().splitlines()
    assert lines[3].split("\t")[:4] == ["f1", "kid1", "0.25", "0.25"]
    assert (outdir / "result.pca").exists()
    assert "pedigree_file" in (outdir / "result.log.txt").read_text()


def test_cli_pedigree_loop(tmp_path: Path):
    ped = tmp_path / "loop.ped"
    ped.write_text("f a b 0\nf b a 0\n")
    result = runner.invoke(
        app, ["-outdir", str(tmp_path), "pedigree", "--ped", str(ped)]
    )
    assert result.exit_code == 1
    assert "loop" in result.output
