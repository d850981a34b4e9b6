import tracemalloc

import pytest

from bootprof.analyzers.timer import LifecycleTimer
from bootprof.cache.store import MemoryStore
from bootprof.controller.profile_loop import ProfileRunner, read_capabilities, sort_records
from bootprof.schemas import ComponentRecord, ProfileOptions, RunStatus, SortField
from fixtures.sample_components import CacheService, DeferredComponent

MODULE = "fixtures.sample_components"
ALPHA = f"{MODULE}.AlphaComponent"
BROKEN = f"{MODULE}.BrokenComponent"


@pytest.fixture
def runner(app, clock, settings):
    return ProfileRunner(host=app, store=MemoryStore(), settings=settings,
                         timer=LifecycleTimer(clock=clock))


def test_successful_and_failing_component(runner):
    result = runner.run([BROKEN, ALPHA], ProfileOptions(threshold=0.01))

    assert result.status == RunStatus.SUCCESS
    assert list(result.snapshot.components) == [ALPHA, BROKEN]

    alpha = result.snapshot.components[ALPHA]
    assert alpha.register_time == pytest.approx(0.02)
    assert alpha.boot_time == pytest.approx(0.01)
    assert alpha.total_time == pytest.approx(0.03)
    assert alpha.error is None

    broken = result.snapshot.components[BROKEN]
    assert broken.error == "boom"
    assert broken.register_time is None
    assert broken.boot_time is None
    assert broken.total_time is None

    stats = result.statistics
    assert stats.total_components == 2
    assert stats.successful_components == 1
    assert stats.failed_components == 1
    assert stats.slow_components == [ALPHA]


def test_empty_inventory(runner):
    result = runner.run([], ProfileOptions())
    assert result.status == RunStatus.NO_COMPONENTS
    assert result.error == "No components found."
    assert len(result.snapshot) == 0


def test_duplicates_are_profiled_once(runner, clock):
    result = runner.run([ALPHA, f"{MODULE}:AlphaComponent", ALPHA], ProfileOptions())
    assert list(result.snapshot.components) == [ALPHA]
    assert clock.now == pytest.approx(0.03)


def test_boot_failure_is_recorded_separately(runner):
    identifier = f"{MODULE}.BootFailsComponent"
    record = runner.run([identifier], ProfileOptions()).snapshot.components[identifier]

    assert record.error is None
    assert record.boot_error == "boot exploded"
    assert record.register_time == pytest.approx(0.004)
    assert record.boot_time == pytest.approx(0.002)
    assert record.total_time == pytest.approx(0.006)


def test_unresolvable_component_is_a_failed_record(runner):
    result = runner.run([f"{MODULE}.NotAComponent", "missing_pkg_xyz.Provider"], ProfileOptions())
    for record in result.snapshot.components.values():
        assert record.error
        assert record.total_time is None
    assert result.statistics.failed_components == 2


def test_capabilities_diagnostics_and_dependencies(runner, app):
    deferred = f"{MODULE}.DeferredComponent"
    injected = f"{MODULE}.InjectedComponent"
    result = runner.run([deferred, injected], ProfileOptions())

    record = result.snapshot.components[deferred]
    assert record.is_deferred
    assert record.provides == ["mailer", f"{MODULE}.CacheService"]
    assert "container" in record.diagnostics

    record = result.snapshot.components[injected]
    assert [d.param_name for d in record.dependencies] == ["cache", "db"]
    assert result.statistics.deferred_components == 1
    assert app.bound(CacheService)


def test_diagnostics_can_be_disabled(runner):
    result = runner.run([ALPHA], ProfileOptions(diagnostics=False))
    record = result.snapshot.components[ALPHA]
    assert record.diagnostics is None
    assert record.dependencies is None


def test_parallel_estimate_is_written_to_records(runner):
    result = runner.run([ALPHA, f"{MODULE}.RegisterOnlyComponent"], ProfileOptions(parallel=True))
    for record in result.snapshot.components.values():
        assert record.parallel_estimate == pytest.approx(0.03)
        assert record.sequential_time == pytest.approx(0.033)
        assert record.potential_speedup == 1.1


def test_compare_against_previous_run(app, clock, settings):
    store = MemoryStore()
    first = ProfileRunner(host=app, store=store, settings=settings,
                          timer=LifecycleTimer(clock=clock))
    assert first.run([ALPHA], ProfileOptions(compare=True)).comparisons == []

    store.get("bootprof:components:last_run")["components"][ALPHA]["total_time"] = 0.01
    second = ProfileRunner(host=app, store=store, settings=settings,
                           timer=LifecycleTimer(clock=clock))
    comparisons = second.run([ALPHA], ProfileOptions(compare=True)).comparisons
    assert [c.identifier for c in comparisons] == [ALPHA]
    assert comparisons[0].delta == pytest.approx(0.02)


def test_compare_off_leaves_comparisons_unset(runner):
    assert runner.run([ALPHA], ProfileOptions()).comparisons is None


def test_dry_run_never_executes_components(app, clock, settings):
    runner = ProfileRunner(host=app, store=MemoryStore(), settings=settings)
    result = runner.run([ALPHA, BROKEN], ProfileOptions(dry_run=True, seed=3, memory=True))

    assert clock.now == 0.0
    assert result.statistics.failed_components == 0
    for record in result.snapshot.components.values():
        assert record.total_time > 0
        assert record.diagnostics is None
        assert 2048 <= record.total_memory <= 20480

    again = ProfileRunner(host=app, store=MemoryStore(), settings=settings).run(
        [ALPHA, BROKEN], ProfileOptions(dry_run=True, seed=3, memory=True))
    assert again.snapshot.model_dump(exclude={"created_at"}) == \
        result.snapshot.model_dump(exclude={"created_at"})


def test_sort_is_stable_for_ties():
    records = {
        "first": ComponentRecord(total_time=0.01, register_time=0.002),
        "second": ComponentRecord(total_time=0.02, register_time=0.002),
        "third": ComponentRecord(total_time=0.01, register_time=0.009),
        "failed": ComponentRecord(error="x"),
    }
    assert list(sort_records(records)) == ["second", "first", "third", "failed"]
    assert list(sort_records(records, SortField.REGISTER)) == ["third", "first", "second", "failed"]


def test_read_capabilities_without_component_base():
    class Plain:
        deferred = True
        provides = ("queue",)

    assert read_capabilities(Plain()) == (True, ["queue"])
    assert read_capabilities(object()) == (False, [])
    assert read_capabilities(DeferredComponent(app=None))[0] is True


def test_memory_run_totals_are_phase_sums_and_tracing_ends(runner):
    inventory = [ALPHA, f"{MODULE}.BootFailsComponent", f"{MODULE}.RegisterOnlyComponent"]
    result = runner.run(inventory, ProfileOptions(memory=True))

    assert not tracemalloc.is_tracing()
    assert result.statistics.total_memory_bytes is not None
    for record in result.snapshot.components.values():
        assert record.total_memory == record.register_memory + record.boot_memory
        assert record.total_time == pytest.approx(record.register_time + record.boot_time)


def test_seeded_dry_run_memory_totals_are_phase_sums(app, settings):
    runner = ProfileRunner(host=app, store=MemoryStore(), settings=settings)
    result = runner.run([ALPHA, BROKEN], ProfileOptions(dry_run=True, seed=9, memory=True))
    for record in result.snapshot.components.values():
        assert record.register_memory > 0 and record.boot_memory > 0
        assert record.total_memory == record.register_memory + record.boot_memory
        assert record.total_time == record.register_time + record.boot_time


def test_component_calling_sys_exit_does_not_stop_the_run(runner):
    exiting = f"{MODULE}.ExitingComponent"
    result = runner.run([exiting, ALPHA], ProfileOptions())

    assert result.snapshot.components[exiting].error == "2"
    assert result.snapshot.components[ALPHA].total_time == pytest.approx(0.03)
