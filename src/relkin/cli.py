"""relkin command-line interface.

This module provides a Typer-based CLI with global -outdir, -o and -v flags
for output configuration, and one command per kinship source.
"""

import sys
from pathlib import Path
from typing import Annotated

import typer

import relkin
from relkin.core import OutputConfig
from relkin.core.config import KinshipMethod
from relkin.core.errors import PedigreeError
from relkin.core.site_filter import GenomicRange, parse_range_list
from relkin.io.lists import read_id_list, read_id_map, read_range_file
from relkin.pipeline import PipelineConfig, PipelineResult, PipelineRunner
from relkin.utils import setup_logging, write_run_log

app = typer.Typer(
    name="relkin",
    help="relkin: kinship matrices from genotypes or pedigrees.",
    add_completion=False,
)

# Store global options set by callback
_global_config: OutputConfig | None = None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from relkin.core import get_jax_info
        from relkin.core.threading import blas_info

        typer.echo(f"relkin version {relkin.__version__}")

        info = get_jax_info()
        typer.echo(
            f"JAX {info['version']} on {info['backend']} "
            f"({info['n_devices']} device(s), 64-bit: {info['x64_enabled']})"
        )
        for lib in blas_info():
            typer.echo(
                f"BLAS {lib['library']} {lib['version']} "
                f"({lib['num_threads']} threads)"
            )
        raise typer.Exit()


def _read_ids(ids: str | None, id_file: Path | None) -> list[str] | None:
    """Merge comma-separated ids and the first column of an id file."""
    if ids is None and id_file is None:
        return None
    merged = [i for i in (ids or "").split(",") if i]
    if id_file is not None:
        merged.extend(read_id_list(id_file))
    return merged


def _read_ranges(
    ranges: str | None, range_file: Path | None
) -> tuple[GenomicRange, ...]:
    """Merge a comma-separated range list and a range file."""
    merged = parse_range_list(ranges) if ranges else ()
    if range_file is not None:
        merged += read_range_file(range_file)
    return merged


def _run(config: PipelineConfig) -> PipelineResult:
    """Run the pipeline, turning user errors into exit code 1."""
    try:
        return PipelineRunner(config).run()
    except (FileNotFoundError, ValueError, PedigreeError, MemoryError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None


def _finish(result: PipelineResult, params: dict) -> None:
    sections = {
        "Parameters": {**params, "n_samples": result.n_samples},
        "Site Summary": result.site_summary(),
        "Output Files": result.output_files(),
    }
    timing = {
        "total": result.timing["total_s"],
        "kinship": result.timing["kinship_s"],
    }
    if result.timing.get("pca_s"):
        timing["pca"] = result.timing["pca_s"]

    log_path = write_run_log(
        _global_config, " ".join(sys.argv), sections, timing=timing
    )
    typer.echo(f"Log written to {log_path}")


@app.callback()
def main(
    outdir: Annotated[
        Path,
        typer.Option("-outdir", help="Output directory"),
    ] = Path("output"),
    output: Annotated[
        str,
        typer.Option("-o", help="Output file prefix"),
    ] = "result",
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Verbose output"),
    ] = False,
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Also write JSON-lines debug log here"),
    ] = None,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """relkin: kinship matrices and principal components.

    Empirical kinship (IBS or Balding-Nicols) from PLINK genotypes, or
    expected kinship from a declared pedigree.
    """
    global _global_config
    _global_config = OutputConfig(outdir=outdir, prefix=output, verbose=verbose)
    setup_logging(verbose=verbose, log_file=log_file)


@app.command("empirical")
def empirical_command(
    bfile: Annotated[
        Path,
        typer.Option("-bfile", help="PLINK binary file prefix"),
    ],
    method: Annotated[
        KinshipMethod,
        typer.Option("--method", help="Estimator: ibs, ibs-impute or bn"),
    ] = KinshipMethod.IBS,
    pca: Annotated[
        bool,
        typer.Option("--pca", help="Also write principal components (.pca)"),
    ] = False,
    min_maf: Annotated[
        float,
        typer.Option("--min-maf", help="Minimum allele frequency (default: 0.05)"),
    ] = 0.05,
    max_miss: Annotated[
        float,
        typer.Option("--max-miss", help="Maximum missing rate (default: 0.05)"),
    ] = 0.05,
    keep: Annotated[
        str | None,
        typer.Option("--keep", help="Comma-separated individual ids to include"),
    ] = None,
    keep_file: Annotated[
        Path | None,
        typer.Option("--keep-file", help="File of individual ids to include"),
    ] = None,
    remove: Annotated[
        str | None,
        typer.Option("--remove", help="Comma-separated individual ids to exclude"),
    ] = None,
    remove_file: Annotated[
        Path | None,
        typer.Option("--remove-file", help="File of individual ids to exclude"),
    ] = None,
    ranges: Annotated[
        str | None,
        typer.Option(
            "--range", help="Comma-separated chr:begin-end ranges of sites to use"
        ),
    ] = None,
    range_file: Annotated[
        Path | None,
        typer.Option("--range-file", help="File of chr:begin-end ranges, one per line"),
    ] = None,
    update_id: Annotated[
        Path | None,
        typer.Option("--update-id", help="File of old and new individual ids"),
    ] = None,
    double_count: Annotated[
        bool,
        typer.Option(
            "--double-count",
            help="Halve ibs-impute values as vcf2kinship does",
        ),
    ] = False,
    chunk_size: Annotated[
        int,
        typer.Option("--chunk-size", help="SNPs per disk read"),
    ] = 10_000,
    check_memory: Annotated[
        bool,
        typer.Option(
            "--check-memory/--no-check-memory",
            help="Enable/disable pre-flight memory check (default: enabled)",
        ),
    ] = True,
    progress: Annotated[
        bool,
        typer.Option("--progress/--no-progress", help="Show a progress bar"),
    ] = True,
) -> None:
    """Compute empirical kinship from genotype data.

    Streams PLINK binary files one site at a time through the site filter
    into the selected estimator. Writes <prefix>.kinship and, with --pca,
    <prefix>.pca.
    """
    global _global_config
    if _global_config is None:
        _global_config = OutputConfig()

    for path in (keep_file, remove_file, range_file, update_id):
        if path is not None and not path.exists():
            typer.echo(f"Error: file not found: {path}", err=True)
            raise typer.Exit(code=1)
    try:
        site_ranges = _read_ranges(ranges, range_file)
        id_map = read_id_map(update_id) if update_id is not None else None
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    config = PipelineConfig(
        bfile=bfile,
        method=method,
        double_count_sites=double_count,
        min_maf=min_maf,
        max_miss=max_miss,
        keep=_read_ids(keep, keep_file),
        remove=_read_ids(remove, remove_file),
        ranges=site_ranges,
        update_ids=id_map,
        pca=pca,
        output_dir=_global_config.outdir,
        output_prefix=_global_config.prefix,
        chunk_size=chunk_size,
        check_memory=check_memory,
        show_progress=progress,
    )
    typer.echo(f"Computing {method.value} kinship from {bfile}...")
    result = _run(config)
    typer.echo(f"Kinship matrix written to {result.kinship_path}")
    if result.pca_path is not None:
        typer.echo(f"PCA written to {result.pca_path}")

    _finish(
        result,
        {
            "method": method.value,
            "min_maf": min_maf,
            "max_miss": max_miss,
            "double_count_sites": double_count,
            "ranges": len(site_ranges),
            "update_id_file": str(update_id) if update_id else None,
        },
    )


@app.command("pedigree")
def pedigree_command(
    ped: Annotated[
        Path,
        typer.Option("--ped", help="Pedigree file (FID IID father mother ...)"),
    ],
    pca: Annotated[
        bool,
        typer.Option("--pca", help="Also write principal components (.pca)"),
    ] = False,
) -> None:
    """Compute expected kinship from a pedigree.

    Writes <prefix>.kinship and, with --pca, <prefix>.pca.
    """
    global _global_config
    if _global_config is None:
        _global_config = OutputConfig()

    config = PipelineConfig(
        ped=ped,
        pca=pca,
        output_dir=_global_config.outdir,
        output_prefix=_global_config.prefix,
    )
    typer.echo(f"Computing pedigree kinship from {ped}...")
    result = _run(config)
    typer.echo(f"Kinship matrix written to {result.kinship_path}")
    if result.pca_path is not None:
        typer.echo(f"PCA written to {result.pca_path}")

    _finish(result, {"pedigree_file": str(ped)})


if __name__ == "__main__":
    app()
