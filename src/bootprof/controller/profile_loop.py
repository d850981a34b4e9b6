import functools
import inspect
import tracemalloc
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tqdm import tqdm

from ..analyzers.dependencies import DependencyExtractor, qualified_name
from ..analyzers.parallel import ParallelEstimator
from ..analyzers.patterns import PatternMatcher
from ..analyzers.timer import LifecycleTimer
from ..cache.store import FileStore, KeyValueStore
from ..evaluation.compare import RunComparator
from ..evaluation.stats import calculate_statistics
from ..inventory.discovery import dedupe
from ..sandbox.host import Application
from ..schemas import (ComponentRecord, ProfileOptions, ProfileResult, RunSnapshot,
                       RunStatus, SortField)
from ..utils.config import Settings, get_settings
from ..utils.logger import get_logger

log = get_logger("ProfileLoop")


def sort_records(records: Dict[str, ComponentRecord],
                 sort: SortField = SortField.TOTAL) -> Dict[str, ComponentRecord]:
    """Descending by the chosen field; equal values keep discovery order."""
    field = SortField(sort).record_field
    ordered = sorted(records.items(), key=lambda item: item[1].value(field), reverse=True)
    return dict(ordered)


def read_capabilities(instance: Any) -> Tuple[bool, List[str]]:
    """Deferred flag and provided capability names declared by a component."""
    flag = getattr(instance, "is_deferred", None)
    deferred = bool(flag()) if callable(flag) else bool(getattr(instance, "deferred", False))

    offered = getattr(instance, "provides", None)
    offered = offered() if callable(offered) else offered
    provides = [qualified_name(p) if inspect.isclass(p) else str(p) for p in (offered or [])]
    return deferred, provides


class ProfileRunner:
    """Profiles every component: registration pass, boot pass, then analysis."""

    def __init__(self, host: Optional[Application] = None,
                 store: Optional[KeyValueStore] = None,
                 settings: Optional[Settings] = None,
                 timer: Optional[LifecycleTimer] = None,
                 matcher: Optional[PatternMatcher] = None,
                 extractor: Optional[DependencyExtractor] = None,
                 estimator: Optional[ParallelEstimator] = None,
                 show_progress: bool = False):
        self.settings = settings or get_settings()
        self.host = host or Application()
        self.store = store
        self.timer = timer
        self.matcher = matcher or PatternMatcher()
        self.extractor = extractor or DependencyExtractor()
        self.estimator = estimator or ParallelEstimator()
        self.show_progress = show_progress

    def run(self, inventory: List[str], options: Optional[ProfileOptions] = None) -> ProfileResult:
        options = options or ProfileOptions()
        components = dedupe(inventory)
        log.info(f"=== Starting profile run: {len(components)} component(s) ===")
        log.info(f"Options: {options.model_dump_json()}")

        if not components:
            log.error("No components found")
            return ProfileResult(status=RunStatus.NO_COMPONENTS, options=options,
                                 error="No components found.")

        timer = self.timer or LifecycleTimer(dry_run=options.dry_run, seed=options.seed)
        records: Dict[str, ComponentRecord] = {}
        instances: Dict[str, Any] = {}

        # tracing spans both passes so the peak covers the whole run
        owns_tracing = options.memory and not options.dry_run and not tracemalloc.is_tracing()
        if owns_tracing:
            tracemalloc.start()
        try:
            self._lifecycle_passes(components, records, instances, timer, options)

            if options.parallel:
                log.info("--- Parallel estimate ---")
                self.estimator.apply(records)

            snapshot = RunSnapshot(components=sort_records(records, options.sort))
            statistics = calculate_statistics(snapshot, options.threshold, options.memory)
        finally:
            if owns_tracing:
                tracemalloc.stop()

        comparisons = None
        if options.compare:
            log.info("--- Comparing with previous run ---")
            comparator = RunComparator(self._store(), ttl_hours=self.settings.cache_ttl_hours)
            comparisons = comparator.compare(snapshot)

        log.info(f"=== Profile run complete: {statistics.successful_components} ok, "
                 f"{statistics.failed_components} failed ===")
        return ProfileResult(status=RunStatus.SUCCESS, options=options, snapshot=snapshot,
                             statistics=statistics, comparisons=comparisons)

    def _lifecycle_passes(self, components: List[str], records: Dict[str, ComponentRecord],
                          instances: Dict[str, Any], timer: LifecycleTimer,
                          options: ProfileOptions) -> None:
        progress = tqdm(total=len(components) * 2, disable=not self.show_progress,
                        desc="Profiling components")
        try:
            log.info("--- Registration pass ---")
            for identifier in components:
                progress.set_postfix_str(f"register {identifier}", refresh=False)
                records[identifier] = ComponentRecord()
                instance = self._register(identifier, records[identifier], timer, options)
                if records[identifier].error is None:
                    instances[identifier] = instance
                progress.update(1)

            log.info(f"--- Boot pass: {len(instances)} component(s) ---")
            for identifier, instance in instances.items():
                progress.set_postfix_str(f"boot {identifier}", refresh=False)
                self._boot(identifier, instance, records[identifier], timer, options)
                progress.update(1)
        finally:
            progress.close()

    def _register(self, identifier: str, record: ComponentRecord,
                  timer: LifecycleTimer, options: ProfileOptions) -> Any:
        timing = timer.measure(functools.partial(self.host.register_component, identifier),
                               track_memory=options.memory, identifier=identifier)
        if not timing.success:
            record.error = timing.error or "Failed to resolve or register"
            log.warning(f"Registration failed for {identifier}: {record.error}")
            return None

        record.register_time = timing.duration
        record.register_memory = timing.memory_delta

        if options.dry_run:
            record.is_deferred = timer.synthesize_deferred()
            return None

        try:
            record.is_deferred, record.provides = read_capabilities(timing.result)
        except Exception as e:
            log.warning(f"Could not read capabilities of {identifier}: {e}")

        if options.diagnostics:
            record.diagnostics = self.matcher.analyze(identifier)
            record.dependencies = self.extractor.extract(identifier)
        return timing.result

    def _boot(self, identifier: str, instance: Any, record: ComponentRecord,
              timer: LifecycleTimer, options: ProfileOptions) -> None:
        timing = timer.measure(functools.partial(self.host.boot_component, instance),
                               track_memory=options.memory, identifier=identifier)
        record.boot_time = timing.duration
        record.boot_memory = timing.memory_delta
        if not timing.success:
            record.boot_error = timing.error
            log.warning(f"Boot failed for {identifier}: {timing.error}")

        record.total_time = record.value("register_time") + record.value("boot_time")
        record.total_memory = record.register_memory + record.boot_memory

    def _store(self) -> KeyValueStore:
        if self.store is None:
            self.store = FileStore(Path(self.settings.cache_dir))
        return self.store


def run_profile(inventory: List[str], options: Optional[ProfileOptions] = None,
                **kwargs) -> ProfileResult:
    return ProfileRunner(**kwargs).run(inventory, options)
