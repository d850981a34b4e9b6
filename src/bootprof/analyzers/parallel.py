# analyzers/parallel.py
from typing import Dict, Iterable, List, Mapping, Optional
from .base import Analyzer
from .dependencies import qualified_name
from ..schemas import ComponentRecord, ParallelEstimate
from ..sandbox.host import load_class

EPSILON = 0.0001  # seconds; floor for the parallel time in the speedup ratio


class ParallelEstimator(Analyzer):
    """Critical-path estimate of boot time with unlimited parallel workers.

    A component may start once the last of its in-run dependencies has
    finished; dependencies that were not profiled are ignored. The result is
    the longest dependency chain, an estimate rather than a schedule.
    """

    def __init__(self):
        super().__init__("ParallelEstimator")

    def run(self, records: Mapping[str, ComponentRecord]) -> ParallelEstimate:
        return self.apply(records)

    def estimate(self, records: Mapping[str, ComponentRecord],
                 edges: Optional[Mapping[str, Iterable[str]]] = None) -> ParallelEstimate:
        if edges is None:
            edges = self.dependency_edges(records)
        times: Dict[str, float] = {name: r.value("total_time") for name, r in records.items()}

        sequential_time = sum(times.values())
        finish = self._finish_times(times, edges)
        parallel_time = max(finish.values(), default=0.0)

        speedup = sequential_time / max(parallel_time, EPSILON) if sequential_time > 0 else 1.0
        result = ParallelEstimate(parallel_time=parallel_time,
                                  sequential_time=sequential_time,
                                  speedup=round(speedup, 2))
        self.log.info(f"Parallel estimate: {parallel_time:.6f}s vs sequential "
                      f"{sequential_time:.6f}s (~{result.speedup}x)")
        return result

    def apply(self, records: Mapping[str, ComponentRecord]) -> ParallelEstimate:
        """Estimate and write the run-level figures onto every record."""
        result = self.estimate(records)
        for record in records.values():
            record.parallel_estimate = result.parallel_time
            record.sequential_time = result.sequential_time
            record.potential_speedup = result.speedup
        return result

    def _finish_times(self, times: Mapping[str, float],
                      edges: Mapping[str, Iterable[str]]) -> Dict[str, float]:
        """Post-order walk with an explicit stack; chain depth is unbounded."""
        def in_run(name):
            return iter([d for d in edges.get(name, ()) if d in times and d != name])

        finish: Dict[str, float] = {}
        for root in times:
            if root in finish:
                continue
            start = {root: 0.0}
            visiting = {root}
            stack = [(root, in_run(root))]
            while stack:
                name, pending = stack[-1]
                for dep in pending:
                    if dep in finish:
                        start[name] = max(start[name], finish[dep])
                    elif dep in visiting:
                        self.log.warning(f"Dependency cycle between {name} and {dep}; edge ignored")
                    else:
                        start[dep] = 0.0
                        visiting.add(dep)
                        stack.append((dep, in_run(dep)))
                        break
                else:
                    stack.pop()
                    visiting.discard(name)
                    finish[name] = start[name] + times[name]
                    if stack:
                        parent = stack[-1][0]
                        start[parent] = max(start[parent], finish[name])
        return finish

    def dependency_edges(self, records: Mapping[str, ComponentRecord]) -> Dict[str, List[str]]:
        """In-run edges keyed by record identifier.

        Dependencies name the defining class (`pkg.impl.Base`) while records
        are keyed as discovered (`pkg.Base`); both spellings map to the record.
        """
        with_deps = {name: r.dependencies for name, r in records.items() if r.dependencies}
        if not with_deps:
            return {}
        aliases = {self.canonical_name(name): name for name in records}
        return {
            name: [aliases.get(d.type_name, d.type_name) for d in deps]
            for name, deps in with_deps.items()
        }

    def canonical_name(self, identifier: str) -> str:
        """Module and qualified name of the class behind `identifier`."""
        try:
            return qualified_name(load_class(identifier))
        except Exception as e:
            self.log.debug(f"Keeping {identifier} as written: {e}")
            return identifier
