"""
Run-over-run Comparison

Diffs the current run against the snapshot cached by the previous run and
stores the current run as the new baseline.

Known limitation: when a component's previous total time was exactly 0 the
percent change is reported as 0%, even though the relative change is
unbounded. Read `delta` for those rows.
"""

from typing import List, Optional

from pydantic import ValidationError

from ..cache.store import KeyValueStore
from ..schemas import ComparisonEntry, RunSnapshot
from ..utils.logger import get_logger

log = get_logger("RunComparator")

CACHE_KEY = "bootprof:components:last_run"
SIGNIFICANT_CHANGE_THRESHOLD = 0.001  # seconds


class RunComparator:
    """Compare a run against the previously cached one."""

    def __init__(self, store: KeyValueStore, ttl_hours: float = 24,
                 cache_key: str = CACHE_KEY):
        self.store = store
        self.ttl_seconds = ttl_hours * 3600
        self.cache_key = cache_key

    def load_previous(self) -> Optional[RunSnapshot]:
        try:
            payload = self.store.get(self.cache_key)
        except (OSError, ValueError) as e:
            log.warning(f"Cache unavailable, treating as first run: {e}")
            return None
        if not payload:
            return None
        try:
            return RunSnapshot.model_validate(payload)
        except ValidationError as e:
            log.warning(f"Ignoring unreadable cached run: {e.error_count()} validation error(s)")
            return None

    def store_current(self, current: RunSnapshot) -> None:
        try:
            self.store.put(self.cache_key, current.model_dump(mode="json"), self.ttl_seconds)
        except (OSError, TypeError, ValueError) as e:
            log.warning(f"Could not store run for later comparison: {e}")

    def compare(self, current: RunSnapshot) -> List[ComparisonEntry]:
        """
        Significant changes in total time, largest absolute change first.

        Args:
            current: The run just completed

        Returns:
            Entries for components present in both runs whose total time moved
            by at least SIGNIFICANT_CHANGE_THRESHOLD; empty without a cached run
        """
        previous = self.load_previous()
        if previous is None:
            log.info("No previous run found for comparison")
            self.store_current(current)
            return []

        comparisons = diff_snapshots(previous, current)
        log.info(f"{len(comparisons)} significant change(s) against previous run "
                 f"from {previous.created_at.isoformat()}")
        self.store_current(current)
        return comparisons


def diff_snapshots(previous: RunSnapshot, current: RunSnapshot) -> List[ComparisonEntry]:
    comparisons = []
    for identifier, record in current.components.items():
        if identifier not in previous.components or record.total_time is None:
            continue
        prev_total = previous.components[identifier].value("total_time")
        curr_total = record.total_time
        delta = curr_total - prev_total
        if abs(delta) < SIGNIFICANT_CHANGE_THRESHOLD:
            continue
        comparisons.append(ComparisonEntry(
            identifier=identifier,
            previous=prev_total,
            current=curr_total,
            delta=delta,
            percent_delta=(delta / prev_total) * 100 if prev_total > 0 else 0.0,
        ))
    comparisons.sort(key=lambda c: abs(c.delta), reverse=True)
    return comparisons
