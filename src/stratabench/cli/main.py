"""
StrataBench CLI - Main Entry Point

Command-line interface for running benchmarks and comparing result files.

Usage:
    stratabench run latency --durability cache          # Primitive latency suite
    stratabench run concurrency --threads 1,2,4         # Thread-count sweep
    stratabench run redis-compare --quick               # redis-benchmark equivalents
    stratabench compare base.json cand.json             # Percentage-delta report
    stratabench workloads                               # List registered workloads
"""

import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click
from loguru import logger

from stratabench.cli.formatters import format_comparison, format_document, format_workloads
from stratabench.core.comparison import compare_files
from stratabench.core.config import (
    BenchConfig,
    load_config,
    parse_durability_modes,
    parse_int_list,
    quick_config,
)
from stratabench.core.exceptions import SchemaError, StrataBenchError
from stratabench.core.schema import CATEGORIES
from stratabench.runner import BenchmarkRunner
from stratabench.workloads import get_workload, list_workloads, workload_group

# Exit codes
EXIT_REGRESSION = 1
EXIT_ERROR = 2


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to stratabench.yaml",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose (DEBUG) logging",
)
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """
    StrataBench - latency and throughput harness for the storage engine.

    Runs benchmark categories into portable result documents and compares
    two documents metric by metric.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config

    try:
        bench_config = load_config(Path(config) if config else None)
    except StrataBenchError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_ERROR)
    ctx.obj["config"] = bench_config

    _configure_logging("DEBUG" if verbose else bench_config.output.log_level)


# ============================================================================
# CLI Commands
# ============================================================================

@cli.command()
@click.argument("category", type=click.Choice(CATEGORIES))
@click.option(
    "--durability",
    "durability",
    multiple=True,
    help="Durability mode(s): cache, flush, always. Repeatable; default: all",
)
@click.option(
    "--workload",
    "-w",
    "workloads",
    multiple=True,
    help="Workload key(s) to run. Repeatable; default: the category's workloads",
)
@click.option("--threads", "-t", help="Comma-separated thread counts for concurrency, e.g. 1,2,4")
@click.option("--warmup", type=float, help="Warmup seconds per sweep point")
@click.option("--duration", type=float, help="Measurement seconds per sweep point")
@click.option("--ops", type=int, help="Operations per single-threaded measurement")
@click.option("--seed", type=int, help="Seed for all random sources (default: OS entropy)")
@click.option("--results-dir", type=click.Path(file_okay=False), help="Output directory")
@click.option("--quick", is_flag=True, help="Short windows and small keyspaces for smoke runs")
@click.pass_context
def run(
    ctx,
    category: str,
    durability: tuple,
    workloads: tuple,
    threads: Optional[str],
    warmup: Optional[float],
    duration: Optional[float],
    ops: Optional[int],
    seed: Optional[int],
    results_dir: Optional[str],
    quick: bool,
):
    """
    Run one benchmark CATEGORY and write its result document.

    Examples:
        stratabench run latency -w kv/put -w kv/get --durability cache
        stratabench run concurrency -w contention/hot_key --threads 1,2,4,8
    """
    config: BenchConfig = ctx.obj["config"]
    try:
        config = _apply_overrides(
            quick_config(config) if quick else config,
            durability=durability,
            threads=threads,
            warmup=warmup,
            duration=duration,
            ops=ops,
            seed=seed,
            results_dir=results_dir,
        )
        runner = BenchmarkRunner(config)
        recorder = runner.run(
            category,
            workloads=list(workloads) or None,
            durability_modes=config.sweep.durability_modes,
            thread_counts=config.sweep.thread_counts,
        )
        document = recorder.build()
        path = recorder.save(document)
    except StrataBenchError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_ERROR)

    click.echo(format_document(document))
    click.echo(str(path))


def _apply_overrides(
    config: BenchConfig,
    durability: tuple = (),
    threads: Optional[str] = None,
    warmup: Optional[float] = None,
    duration: Optional[float] = None,
    ops: Optional[int] = None,
    seed: Optional[int] = None,
    results_dir: Optional[str] = None,
) -> BenchConfig:
    """Command-line flags win over YAML and environment values."""
    driver = config.driver
    if warmup is not None:
        driver = replace(driver, warmup_seconds=warmup)
    if duration is not None:
        driver = replace(driver, measure_seconds=duration)
    if seed is not None:
        driver = replace(driver, seed=seed)

    sweep = config.sweep
    if durability:
        sweep = replace(sweep, durability_modes=parse_durability_modes(",".join(durability), "durability"))
    if threads:
        sweep = replace(sweep, thread_counts=parse_int_list(threads, "threads"))

    workloads = config.workloads
    if ops is not None:
        workloads = replace(workloads, latency_ops=ops, redis_requests=ops)

    output = config.output
    if results_dir is not None:
        output = replace(output, results_dir=results_dir)

    return replace(config, driver=driver, sweep=sweep, workloads=workloads, output=output)


@cli.command()
@click.argument("baseline", type=click.Path())
@click.argument("candidate", type=click.Path())
@click.option(
    "--tolerance",
    type=float,
    help="Changes within +/- this percentage are reported as ~same (default: 1.0)",
)
@click.option("--json", "output_json", is_flag=True, help="Output the report as JSON")
@click.option(
    "--fail-on-regression",
    is_flag=True,
    help=f"Exit with status {EXIT_REGRESSION} when any metric regressed",
)
@click.pass_context
def compare(ctx, baseline: str, candidate: str, tolerance: Optional[float], output_json: bool, fail_on_regression: bool):
    """
    Compare two result files (BASELINE vs CANDIDATE).

    Exits with status 2 if either file cannot be parsed or the schema
    versions differ.
    """
    config: BenchConfig = ctx.obj["config"]
    tolerance_pct = config.comparison.tolerance_pct if tolerance is None else tolerance
    if tolerance_pct < 0:
        click.echo("Error: --tolerance must be >= 0", err=True)
        ctx.exit(EXIT_ERROR)

    try:
        report = compare_files(baseline, candidate, tolerance_pct)
    except SchemaError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_ERROR)

    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        color = sys.stdout.isatty()
        click.echo(format_comparison(report, color=color))

    if fail_on_regression and report.has_regressions:
        ctx.exit(EXIT_REGRESSION)


@cli.command()
@click.option("--group", "-g", type=click.Choice(["latency", "concurrency", "ycsb", "redis-compare", "fill-level"]))
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def workloads(ctx, group: Optional[str], output_json: bool):
    """List registered workloads."""
    settings = ctx.obj["config"].workloads
    rows = []
    for key in list_workloads(group):
        workload = get_workload(key, settings)
        rows.append({"key": key, "group": workload_group(key), "description": workload.description})

    if output_json:
        click.echo(json.dumps(rows, indent=2))
    else:
        click.echo(format_workloads(rows))


def main():
    cli(prog_name="stratabench")


if __name__ == "__main__":
    main()
