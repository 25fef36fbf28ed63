"""Console logging setup and the per-run log file.

The run log is a plain-text record written next to the .kinship output.
Every line starts with "##" so it can sit beside tabular output without
being mistaken for data. It is split into titled sections:

    ##
    ## relkin Version = 0.1.0
    ## Date = 2026-01-31T10:30:00
    ## Command Line Input = relkin empirical -bfile data --method bn
    ##
    ## Parameters:
    ## method = bn
    ##
    ## Site Summary:
    ## sites_seen = 12226
    ##
    ## Computation Time:
    ## total = 1.23s
    ##
"""

import sys
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

import relkin

CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <8}</level> | {message}"


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Replace the default loguru handlers.

    Args:
        verbose: Show DEBUG messages on the console instead of INFO and up.
        log_file: Also write every DEBUG-and-up record to this file as
            JSON lines.
    """
    logger.remove()
    logger.add(
        sys.stdout,
        level="DEBUG" if verbose else "INFO",
        format=CONSOLE_FORMAT,
        colorize=True,
    )
    if log_file is not None:
        logger.add(log_file, level="DEBUG", serialize=True)


def _format(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    if value is None:
        return "NA"
    return str(value)


def _section(title: str, entries: Mapping[str, Any]) -> list[str]:
    return [
        f"## {title}:",
        *(f"## {key} = {_format(value)}" for key, value in entries.items()),
        "##",
    ]


def write_run_log(
    output_config: "relkin.core.config.OutputConfig",
    command_line: str,
    sections: Mapping[str, Mapping[str, Any]],
    timing: Mapping[str, float] | None = None,
) -> Path:
    """Write the run log for one invocation.

    Args:
        output_config: Output directory and prefix; the log goes to
            output_config.log_path.
        command_line: The command as typed.
        sections: Section title -> key/value pairs, written in order.
            Empty sections are left out.
        timing: Phase name -> seconds, written last.

    Returns:
        Path to the written log.
    """
    lines = [
        "##",
        f"## relkin Version = {relkin.__version__}",
        f"## Date = {datetime.now().isoformat(timespec='seconds')}",
        f"## Command Line Input = {command_line}",
        "##",
    ]
    for title, entries in sections.items():
        if entries:
            lines.extend(_section(title, entries))
    if timing:
        seconds = {phase: f"{value:.2f}s" for phase, value in timing.items()}
        lines.extend(_section("Computation Time", seconds))

    output_config.ensure_outdir()
    log_path = output_config.log_path
    log_path.write_text("\n".join(lines) + "\n")
    logger.debug(f"Run log written to {log_path}")
    return log_path
