"""Tests for logging setup and the run log."""

from pathlib import Path

from loguru import logger

import relkin
from relkin.core import OutputConfig
from relkin.utils import setup_logging, write_run_log


class TestWriteRunLog:
    """Tests for write_run_log()."""

    def test_header_and_sections(self, tmp_path: Path):
        config = OutputConfig(outdir=tmp_path / "out", prefix="run")
        path = write_run_log(
            config,
            "relkin empirical -bfile data",
            {
                "Parameters": {"method": "ibs", "min_maf": 0.05},
                "Site Summary": {"sites_seen": 10},
            },
            timing={"total": 1.234},
        )

        assert path == tmp_path / "out" / "run.log.txt"
        lines = path.read_text().splitlines()
        assert lines[0] == "##"
        assert lines[1] == f"## relkin Version = {relkin.__version__}"
        assert "## Command Line Input = relkin empirical -bfile data" in lines
        assert "## min_maf = 0.05" in lines
        assert "## total = 1.23s" in lines
        assert lines.index("## Parameters:") < lines.index("## Site Summary:")
        assert lines.index("## Site Summary:") < lines.index("## Computation Time:")
        assert all(line.startswith("##") for line in lines)

    def test_empty_section_omitted(self, tmp_path: Path):
        config = OutputConfig(outdir=tmp_path, prefix="ped")
        path = write_run_log(
            config,
            "relkin pedigree --ped family.ped",
            {"Parameters": {"n_samples": 4}, "Site Summary": {}},
        )
        text = path.read_text()
        assert "## n_samples = 4" in text
        assert "Site Summary" not in text
        assert "Computation Time" not in text

    def test_missing_value_written_as_na(self, tmp_path: Path):
        config = OutputConfig(outdir=tmp_path, prefix="run")
        path = write_run_log(config, "relkin", {"Output Files": {"kinship": None}})
        assert "## kinship = NA" in path.read_text().splitlines()


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_log_file_receives_debug(self, tmp_path: Path):
        log_file = tmp_path / "debug.jsonl"
        setup_logging(verbose=False, log_file=log_file)
        try:
            logger.debug("hidden from console")
        finally:
            setup_logging()
        assert "hidden from console" in log_file.read_text()
