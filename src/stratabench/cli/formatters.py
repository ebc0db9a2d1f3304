"""
CLI Output Formatters

Human-readable rendering of result documents and comparison reports.
"""

from typing import Any, Dict, List, Optional

from tabulate import tabulate

from stratabench.core.comparison import Change, ComparisonReport, MetricDelta
from stratabench.core.schema import ResultDocument


# Color codes for terminal output
class Colors:
    """ANSI color codes for terminal output."""
    OKGREEN = "\033[92m"
    WARNING = "\033[93m"
    FAIL = "\033[91m"
    ENDC = "\033[0m"
    BOLD = "\033[1m"

    @staticmethod
    def green(text: str) -> str:
        return f"{Colors.OKGREEN}{text}{Colors.ENDC}"

    @staticmethod
    def red(text: str) -> str:
        return f"{Colors.FAIL}{text}{Colors.ENDC}"

    @staticmethod
    def yellow(text: str) -> str:
        return f"{Colors.WARNING}{text}{Colors.ENDC}"

    @staticmethod
    def bold(text: str) -> str:
        return f"{Colors.BOLD}{text}{Colors.ENDC}"


def format_ns(ns: float) -> str:
    """Nanoseconds in the largest unit that keeps the value >= 1."""
    if ns < 1_000:
        return f"{ns:.0f}ns"
    if ns < 1_000_000:
        return f"{ns / 1_000:.2f}us"
    if ns < 1_000_000_000:
        return f"{ns / 1_000_000:.2f}ms"
    return f"{ns / 1_000_000_000:.2f}s"


def format_num(n: float) -> str:
    """Thousands separators, no decimals: 1234567.8 -> '1,234,568'."""
    return f"{n:,.0f}"


def format_metric(metric: str, value: Optional[float]) -> str:
    if value is None:
        return "-"
    if metric.endswith("_ns"):
        return format_ns(value)
    if metric == "ops_per_sec":
        return f"{format_num(value)} ops/s"
    if metric == "abort_rate_pct":
        return f"{value:.2f}%"
    if metric.endswith("_per_op"):
        return f"{value:.3f}"
    return format_num(value)


def format_change(delta: MetricDelta, color: bool = False) -> str:
    if delta.change_pct is None:
        return "undefined"
    text = f"{delta.change_pct:+.1f}%"
    if not color:
        return text
    if delta.change is Change.IMPROVED:
        return Colors.green(text)
    if delta.change is Change.REGRESSED:
        return Colors.red(text)
    return text


def format_verdict(change: Change, color: bool = False) -> str:
    text = {
        Change.IMPROVED: "improved",
        Change.REGRESSED: "REGRESSED",
        Change.NEUTRAL: "~same",
        Change.UNDEFINED: "undefined",
    }[change]
    if not color:
        return text
    if change is Change.IMPROVED:
        return Colors.green(text)
    if change is Change.REGRESSED:
        return Colors.red(text)
    if change is Change.UNDEFINED:
        return Colors.yellow(text)
    return text


def format_comparison(report: ComparisonReport, color: bool = False) -> str:
    """
    Format a comparison report for display.

    Args:
        report: Report from ``compare``.
        color: Emit ANSI colors for improved/regressed cells.

    Returns:
        Table of per-metric deltas followed by the coverage summary.
    """
    lines = []
    lines.append("=" * 72)
    title = "Benchmark Comparison"
    lines.append(Colors.bold(title) if color else title)
    lines.append(f"Baseline:  {report.baseline_name}")
    lines.append(f"Candidate: {report.candidate_name}")
    lines.append(f"Tolerance: +/-{report.tolerance_pct:g}%")
    lines.append("=" * 72)
    lines.append("")

    rows: List[List[str]] = []
    for entry in report.matched:
        for i, delta in enumerate(entry.deltas):
            rows.append(
                [
                    entry.benchmark if i == 0 else "",
                    delta.metric,
                    format_metric(delta.metric, delta.baseline),
                    format_metric(delta.metric, delta.candidate),
                    format_change(delta, color),
                    format_verdict(delta.change, color),
                ]
            )
    if rows:
        headers = ["Benchmark", "Metric", "Baseline", "Candidate", "Delta", "Verdict"]
        lines.append(tabulate(rows, headers=headers, tablefmt="grid"))
    else:
        lines.append("No comparable metrics.")
    lines.append("")
    lines.append(report.summary())

    if report.removals:
        lines.append("")
        lines.append("Baseline only (removed):")
        lines.extend(f"  - {identity}" for identity in report.removals)
    if report.additions:
        lines.append("")
        lines.append("Candidate only (added):")
        lines.extend(f"  + {identity}" for identity in report.additions)

    regressed = report.count(Change.REGRESSED)
    if regressed:
        lines.append("")
        msg = f"{regressed} metric(s) regressed beyond {report.tolerance_pct:g}%"
        lines.append(Colors.red(msg) if color else msg)

    return "\n".join(lines)


def format_document(document: ResultDocument) -> str:
    """Short table of a freshly recorded result document."""
    rows = []
    for entry in document.results:
        m = entry.metrics
        status = entry.parameters.get("status", "ok")
        rows.append(
            [
                entry.benchmark,
                format_metric("ops_per_sec", m.ops_per_sec),
                format_metric("p50_ns", m.p50_ns),
                format_metric("p99_ns", m.p99_ns),
                format_metric("abort_rate_pct", m.abort_rate_pct),
                status,
            ]
        )
    if not rows:
        return "No results recorded."
    headers = ["Benchmark", "Throughput", "p50", "p99", "Aborts", "Status"]
    return tabulate(rows, headers=headers, tablefmt="grid")


def format_workloads(workloads: List[Dict[str, Any]]) -> str:
    if not workloads:
        return "No workloads registered."
    rows = [[w["key"], w["group"], w["description"]] for w in workloads]
    return tabulate(rows, headers=["Workload", "Group", "Description"], tablefmt="grid")


__all__ = [
    "Colors",
    "format_ns",
    "format_num",
    "format_metric",
    "format_change",
    "format_verdict",
    "format_comparison",
    "format_document",
    "format_workloads",
]
