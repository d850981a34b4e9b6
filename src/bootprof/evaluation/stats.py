"""
Run Statistics

Summary figures over one profiling run: sums, means, the median and a
nearest-rank percentile table of component times, plus the component counts
shown in the summary block.

Percentiles use the nearest-rank method (an existing sample is selected, no
interpolation) so output is comparable across runs and implementations.
"""

import math
import tracemalloc
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from ..schemas import Aggregate, PERCENTILE_RANKS, RunSnapshot, RunStatistics
from ..utils.logger import get_logger

log = get_logger("RunStatistics")


def calculate_median(values: Iterable[float]) -> float:
    """Middle value; mean of the two middle values for an even count."""
    ordered = sorted(values)
    count = len(ordered)
    if count == 0:
        return 0.0
    middle = (count - 1) // 2
    if count % 2:
        return float(ordered[middle])
    return (ordered[middle] + ordered[middle + 1]) / 2


def calculate_percentiles(values: Iterable[float],
                          percentiles: Sequence[int] = PERCENTILE_RANKS) -> Dict[int, float]:
    """
    Nearest-rank percentiles.

    Args:
        values: Samples, any order
        percentiles: Ranks to compute

    Returns:
        Mapping rank -> sample value; empty for empty input
    """
    ordered = sorted(values)
    count = len(ordered)
    if count == 0:
        return {}

    results = {}
    for p in percentiles:
        if p == 100:
            results[p] = float(ordered[-1])
            continue
        index = math.ceil((p / 100) * count) - 1
        index = max(0, min(index, count - 1))
        results[p] = float(ordered[index])
    return results


def aggregate(samples: Sequence[float]) -> Aggregate:
    if len(samples) == 0:
        return Aggregate()
    data = np.asarray(samples, dtype=float)
    return Aggregate(
        sum=float(np.sum(data)),
        mean=float(np.mean(data)),
        median=calculate_median(samples),
        percentiles=calculate_percentiles(samples),
    )


def _present(values: Iterable[Optional[float]]) -> List[float]:
    return [v for v in values if v is not None]


def calculate_statistics(snapshot: RunSnapshot, threshold: float,
                         track_memory: bool = False) -> RunStatistics:
    """Build the statistics block for a run."""
    records = snapshot.components
    total_times = _present(r.total_time for r in records.values())
    register_times = _present(r.register_time for r in records.values())
    boot_times = _present(r.boot_time for r in records.values())

    stats = RunStatistics(
        total_components=len(records),
        deferred_components=sum(1 for r in records.values() if r.is_deferred),
        successful_components=sum(1 for r in records.values() if r.error is None),
        failed_components=sum(1 for r in records.values() if r.error is not None),
        slow_components=[
            name for name, r in records.items()
            if r.error is None and r.value("total_time") >= threshold
        ],
    )

    if total_times:
        totals = aggregate(total_times)
        stats.total_time = totals.sum
        stats.avg_time = totals.mean
        stats.median_time = totals.median
        stats.percentiles = totals.percentiles

    if register_times:
        stats.total_register_time = float(np.sum(register_times))
        stats.avg_register_time = float(np.mean(register_times))

    if boot_times:
        stats.total_boot_time = float(np.sum(boot_times))
        stats.avg_boot_time = float(np.mean(boot_times))

    memory = [r.total_memory for name, r in records.items() if r.error is None]
    if track_memory and memory:
        total_memory = int(sum(memory))
        stats.total_memory_bytes = total_memory
        stats.total_memory_mb = round(total_memory / 1024 / 1024, 2)
        stats.avg_memory_kb = round(total_memory / len(memory) / 1024, 2)
        peak = tracemalloc.get_traced_memory()[1] if tracemalloc.is_tracing() else 0
        stats.peak_memory_mb = round(peak / 1024 / 1024, 2)

    log.info(f"Statistics: {stats.successful_components}/{stats.total_components} successful, "
             f"{len(stats.slow_components)} slow (>= {threshold}s)")
    return stats
