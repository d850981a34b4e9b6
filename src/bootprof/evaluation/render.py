"""
Presentation of a profile run: table, summary, percentiles, recommendations,
comparison table, JSON and CSV. Everything returns text; printing is the
caller's business.
"""

import csv
import json
import platform
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from .. import __version__
from ..schemas import (ComparisonEntry, ComponentRecord, DiagnosticTag, OutputFormat,
                       ProfileResult, RunSnapshot, RunStatistics)

COMPARISON_ROWS = 10
CSV_HEADERS = ["Component", "Register(s)", "Boot(s)", "Total(s)", "Deferred",
               "Memory(KB)", "Diagnostics", "Errors"]


def format_component_name(name: str, max_length: int = 50) -> str:
    """Shorten long dotted paths for display; map keys are never shortened."""
    if len(name) <= max_length:
        return name
    namespace, _, short_name = name.rpartition(".")
    shortened = namespace[:20] + "..." + short_name
    return short_name if len(shortened) > max_length else shortened


def format_duration(seconds: float, warning_threshold: Optional[float] = None) -> str:
    """Six-decimal seconds, marked `!`, `!!` or `!!!` at 1x, 2x and 3x the warning threshold."""
    formatted = f"{seconds:.6f}"
    if seconds == 0 or not warning_threshold:
        return formatted
    if seconds >= warning_threshold * 3:
        return f"{formatted} !!!"
    if seconds >= warning_threshold * 2:
        return f"{formatted} !!"
    if seconds >= warning_threshold:
        return f"{formatted} !"
    return formatted


def format_errors(record: ComponentRecord) -> str:
    return "; ".join(record.errors())


def _table(headers: List[str], rows: List[List[Any]]) -> str:
    return pd.DataFrame(rows, columns=headers).to_string(index=False)


def render_table(result: ProfileResult, top: int, max_name_length: int = 50) -> str:
    options = result.options
    components = result.snapshot.components
    headers = ["Component", "Register(s)", "Boot(s)", "Total(s)", "Type", "Status"]
    if options.memory:
        headers.append("Memory")
    if options.diagnostics:
        headers.append("Diagnostics")
    headers.append("Errors")

    rows = []
    for name, r in list(components.items())[:top]:
        total = r.value("total_time")
        row = [
            format_component_name(name, max_name_length),
            format_duration(r.value("register_time"), options.threshold / 2),
            format_duration(r.value("boot_time"), options.threshold / 2),
            format_duration(total, options.threshold),
            "DEFERRED" if r.is_deferred else "",
            "SLOW" if r.error is None and total >= options.threshold else "",
        ]
        if options.memory:
            row.append(f"{round(r.total_memory / 1024, 2)} KB")
        if options.diagnostics:
            row.append(", ".join((r.diagnostics or [])[:3]))
        row.append(format_errors(r))
        rows.append(row)

    if len(components) > top:
        rows.append([f"... and {len(components) - top} more"] + [""] * (len(headers) - 1))
    return _table(headers, rows)


def render_summary(result: ProfileResult) -> str:
    stats = result.statistics
    threshold = result.options.threshold
    rows = [
        ["Total Components", stats.total_components],
        ["Successful", stats.successful_components],
    ]
    if stats.failed_components > 0:
        rows.append(["Failed", stats.failed_components])
    rows += [
        ["Deferred", stats.deferred_components],
        [f"Slow Components (>={threshold:.3f}s)", len(stats.slow_components)],
        ["Total Boot Time", f"{stats.total_time or 0:.4f}s"],
        ["Average per Component", f"{stats.avg_time or 0:.4f}s"],
        ["Median Time", f"{stats.median_time or 0:.4f}s"],
    ]
    if stats.total_register_time is not None:
        rows.append(["Registration Time", f"{stats.total_register_time:.4f}s"])
    if stats.total_boot_time is not None:
        rows.append(["Boot Time", f"{stats.total_boot_time:.4f}s"])
    if result.options.memory:
        rows.append(["Total Memory", f"{stats.total_memory_mb or 0:.2f} MB"])
        rows.append(["Average Memory", f"{stats.avg_memory_kb or 0:.2f} KB"])
        rows.append(["Peak Memory", f"{stats.peak_memory_mb or 0:.2f} MB"])

    first = next(iter(result.snapshot.components.values()), None)
    if first is not None and first.potential_speedup is not None:
        rows.append(["Parallel Speedup Estimate", f"~{first.potential_speedup}x"])

    text = "SUMMARY STATISTICS\n" + _table(["Metric", "Value"], rows)
    if stats.percentiles:
        percentile_rows = [[f"P{p}", f"{v:.6f}s"] for p, v in stats.percentiles.items()]
        text += "\n\nPERCENTILES (Total Time)\n" + _table(["Percentile", "Value"], percentile_rows)
    return text


def recommendations(snapshot: RunSnapshot, threshold: float) -> List[str]:
    components = snapshot.components
    slow = [r for r in components.values() if r.value("total_time") >= threshold]
    tips = []

    if len(slow) > 5:
        tips.append("Consider optimizing or deferring slow components")
    if any(DiagnosticTag.COUNT_IN_LOOP.value in (r.diagnostics or []) for r in components.values()):
        tips.append("Found len()/count() in loops - consider caching counts")

    deferred = sum(1 for r in components.values() if r.is_deferred)
    if deferred < len(components) * 0.3:
        tips.append("Consider making more components deferred if possible")

    total_time = sum(r.value("total_time") for r in components.values())
    slow_time = sum(r.value("total_time") for r in slow)
    if slow_time > total_time * 0.8:
        tips.append("Focus optimization on the top slow components (Pareto principle)")
    return tips


def render_comparisons(comparisons: List[ComparisonEntry], max_name_length: int = 50,
                       limit: int = COMPARISON_ROWS) -> str:
    if not comparisons:
        return "No significant changes detected compared to previous run."
    rows = [
        [
            format_component_name(c.identifier, max_name_length),
            f"{c.previous:.4f}",
            f"{c.current:.4f}",
            f"{c.delta:+.4f}",
            f"{c.percent_delta:+.1f}%",
        ]
        for c in comparisons[:limit]
    ]
    return (f"Comparison with previous run (top {limit} most changed):\n"
            + _table(["Component", "Previous", "Current", "Delta Time", "Delta %"], rows))


def build_metadata(extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    metadata = {
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "bootprof_version": __version__,
        "python_version": platform.python_version(),
    }
    metadata.update(extra or {})
    return metadata


def render_json(result: ProfileResult) -> str:
    output = {
        "metadata": build_metadata({"options": result.options.model_dump(mode="json")}),
        "statistics": result.statistics.model_dump(mode="json"),
        "components": {
            name: r.model_dump(mode="json") for name, r in result.snapshot.components.items()
        },
    }
    if result.comparisons is not None:
        output["comparisons"] = [c.model_dump(mode="json") for c in result.comparisons]
    return json.dumps(output, indent=2)


def snapshot_frame(snapshot: RunSnapshot, memory: bool) -> pd.DataFrame:
    rows = []
    for name, r in snapshot.components.items():
        rows.append([
            name,
            r.value("register_time"),
            r.value("boot_time"),
            r.value("total_time"),
            "yes" if r.is_deferred else "no",
            round(r.total_memory / 1024, 2) if memory else 0,
            ";".join(r.diagnostics or []),
            format_errors(r),
        ])
    return pd.DataFrame(rows, columns=CSV_HEADERS)


def render_csv(snapshot: RunSnapshot, memory: bool = False) -> str:
    return snapshot_frame(snapshot, memory).to_csv(index=False, quoting=csv.QUOTE_ALL,
                                                   lineterminator="\n")


def render(result: ProfileResult, fmt: OutputFormat = OutputFormat.TABLE,
           top: int = 20, max_name_length: int = 50) -> str:
    fmt = OutputFormat(fmt)
    if fmt == OutputFormat.JSON:
        return render_json(result)
    if fmt == OutputFormat.CSV:
        return render_csv(result.snapshot, result.options.memory)

    sections = [render_table(result, top, max_name_length), render_summary(result)]
    if result.options.diagnostics:
        tips = recommendations(result.snapshot, result.options.threshold)
        if tips:
            sections.append("RECOMMENDATIONS\n" + "\n".join(f"  * {tip}" for tip in tips))
    return "\n\n".join(sections)
