# analyzers/timer.py
import random
import time
import tracemalloc
from typing import Any, Callable, Optional
from .base import Analyzer
from ..schemas import PhaseTiming

# Dry-run synthesis constants
DRY_RUN_BASE_UNIT = 0.0001          # seconds
DRY_RUN_JITTER = (80, 120)          # percent
DRY_RUN_MEMORY_RANGE = (1024, 10240)  # bytes


def _memory_usage() -> int:
    return tracemalloc.get_traced_memory()[0]


def _fault_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class LifecycleTimer(Analyzer):
    """Wraps a lifecycle call, measuring wall-clock duration and memory delta.

    In dry-run mode the call is never made; a duration is synthesized from the
    component identifier instead so the rest of the pipeline can be exercised
    without side effects.
    """

    def __init__(self, *, dry_run: bool = False, seed: Optional[int] = None,
                 rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.perf_counter):
        super().__init__("LifecycleTimer")
        self.dry_run = dry_run
        self.rng = rng or random.Random(seed)
        self.clock = clock

    def run(self, callback: Callable[[], Any], *, track_memory: bool = False,
            identifier: str = "") -> PhaseTiming:
        return self.measure(callback, track_memory=track_memory, identifier=identifier)

    def measure(self, callback: Callable[[], Any], track_memory: bool = False,
                identifier: str = "") -> PhaseTiming:
        """Time `callback`; never raises for faults inside the callback.

        Memory tracing started here is stopped again before returning; a
        caller that wants tracing to span several calls starts it itself.
        """
        if self.dry_run:
            return self.synthesize(identifier, track_memory)

        owns_tracing = track_memory and not tracemalloc.is_tracing()
        if owns_tracing:
            tracemalloc.start()
        try:
            return self._timed_call(callback, track_memory, identifier)
        finally:
            if owns_tracing:
                tracemalloc.stop()

    def _timed_call(self, callback: Callable[[], Any], track_memory: bool,
                    identifier: str) -> PhaseTiming:
        start_memory = _memory_usage() if track_memory else 0
        start_time = self.clock()
        try:
            result = callback()
        # SystemExit from a component must not end the whole run
        except (Exception, SystemExit) as e:
            elapsed = self.clock() - start_time
            delta = _memory_usage() - start_memory if track_memory else 0
            self.log.warning(f"Lifecycle call failed for {identifier or '<anonymous>'} "
                             f"after {elapsed:.6f}s: {type(e).__name__}: {e}")
            return PhaseTiming(duration=max(elapsed, 0.0), memory_delta=delta,
                               success=False, error=_fault_message(e))

        elapsed = self.clock() - start_time
        delta = _memory_usage() - start_memory if track_memory else 0
        self.log.debug(f"{identifier or '<anonymous>'}: {elapsed:.6f}s, {delta} bytes")
        return PhaseTiming(duration=max(elapsed, 0.0), memory_delta=delta,
                           success=True, result=result)

    def synthesize(self, identifier: str, track_memory: bool = False) -> PhaseTiming:
        """Plausible timing derived from the identifier length plus bounded jitter."""
        complexity = len(identifier) / 100
        jitter = self.rng.randint(*DRY_RUN_JITTER) / 100
        memory = self.rng.randint(*DRY_RUN_MEMORY_RANGE) if track_memory else 0
        return PhaseTiming(duration=DRY_RUN_BASE_UNIT * complexity * jitter,
                           memory_delta=memory, success=True)

    def synthesize_deferred(self) -> bool:
        return self.rng.randint(0, 1) == 1
