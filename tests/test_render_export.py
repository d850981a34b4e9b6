import csv
import io
import json

from bootprof.evaluation.export import export_results, resolve_export_path
from bootprof.evaluation.render import (format_component_name, format_duration, recommendations,
                                        render, render_comparisons, render_csv, render_json)
from bootprof.schemas import (ComparisonEntry, ComponentRecord, OutputFormat, ProfileOptions,
                              ProfileResult, RunSnapshot, RunStatistics, RunStatus)


def _result(**option_overrides):
    snapshot = RunSnapshot(components={
        "app.Providers.SlowProvider": ComponentRecord(
            register_time=0.02, boot_time=0.01, total_time=0.03, total_memory=2048,
            diagnostics=["database", "cache", "log", "http"]),
        "app.Providers.BrokenProvider": ComponentRecord(error="boom"),
    })
    return ProfileResult(
        status=RunStatus.SUCCESS,
        options=ProfileOptions(**option_overrides),
        snapshot=snapshot,
        statistics=RunStatistics(total_components=2, successful_components=1,
                                 failed_components=1, total_time=0.03, avg_time=0.03,
                                 median_time=0.03, percentiles={50: 0.03, 100: 0.03},
                                 slow_components=["app.Providers.SlowProvider"]),
    )


def test_format_component_name():
    short = "app.Providers.Auth"
    assert format_component_name(short) == short

    long_name = "vendor.package.subpackage.deeply.nested.module.TelemetryServiceProvider"
    shortened = format_component_name(long_name, 50)
    assert shortened == "vendor.package.subpa...TelemetryServiceProvider"
    assert len(shortened) <= 50
    assert format_component_name(long_name, 30) == "TelemetryServiceProvider"


def test_table_marks_slow_and_shows_errors():
    text = render(_result(), OutputFormat.TABLE, top=20, max_name_length=50)
    assert "SLOW" in text
    assert "boom" in text
    assert "database, cache, log" in text
    assert "http" not in text.split("SUMMARY STATISTICS")[0]
    assert "P100" in text
    assert "Failed" in text


def test_table_truncates_to_top():
    text = render(_result(), OutputFormat.TABLE, top=1)
    assert "... and 1 more" in text


def test_json_output():
    data = json.loads(render_json(_result()))
    assert set(data) == {"metadata", "statistics", "components"}
    assert data["components"]["app.Providers.BrokenProvider"]["total_time"] is None
    assert data["statistics"]["slow_components"] == ["app.Providers.SlowProvider"]
    assert "bootprof_version" in data["metadata"]


def test_csv_output():
    rows = list(csv.reader(io.StringIO(render_csv(_result().snapshot, memory=True))))
    assert rows[0] == ["Component", "Register(s)", "Boot(s)", "Total(s)", "Deferred",
                       "Memory(KB)", "Diagnostics", "Errors"]
    assert rows[1][0] == "app.Providers.SlowProvider"
    assert rows[1][5] == "2.0"
    assert rows[1][6] == "database;cache;log;http"
    assert rows[2][7] == "boom"


def test_recommendations():
    snapshot = RunSnapshot(components={
        f"app.P{i}": ComponentRecord(total_time=0.05, diagnostics=["count_in_loop"])
        for i in range(6)
    })
    tips = recommendations(snapshot, threshold=0.01)
    assert any("deferring slow components" in t for t in tips)
    assert any("loops" in t for t in tips)
    assert any("more components deferred" in t for t in tips)
    assert any("Pareto" in t for t in tips)


def test_render_comparisons():
    assert "No significant changes" in render_comparisons([])
    text = render_comparisons([ComparisonEntry(identifier="app.A", previous=0.01, current=0.03,
                                               delta=0.02, percent_delta=200.0)])
    assert "+200.0%" in text
    assert "+0.0200" in text


def test_export_json_and_csv(settings, tmp_path):
    result = _result()
    exported = export_results(result, OutputFormat.JSON,
                              str(tmp_path / "storage" / "profile.json"), settings)
    assert exported.success
    data = json.loads((tmp_path / "storage" / "profile.json").read_text())
    assert "app.Providers.SlowProvider" in data["components"]

    exported = export_results(result, "csv", str(tmp_path / "reports" / "profile.csv"), settings)
    assert exported.success
    assert (tmp_path / "reports" / "profile.csv").read_text().startswith('"Component"')


def test_export_outside_allowed_dirs_is_rejected(settings, tmp_path):
    target = tmp_path / "elsewhere" / "profile.json"
    exported = export_results(_result(), OutputFormat.JSON, str(target), settings)
    assert not exported.success
    assert "storage" in exported.error
    assert not target.exists()

    escape = str(tmp_path / "storage" / ".." / "escape.json")
    assert resolve_export_path(escape, settings) is None


def test_export_rejects_table_format(settings, tmp_path):
    exported = export_results(_result(), OutputFormat.TABLE,
                              str(tmp_path / "storage" / "profile.txt"), settings)
    assert not exported.success
    assert "Unsupported" in exported.error


def test_format_duration_grades_against_threshold():
    assert format_duration(0.0, 0.01) == "0.000000"
    assert format_duration(0.005, 0.01) == "0.005000"
    assert format_duration(0.01, 0.01) == "0.010000 !"
    assert format_duration(0.02, 0.01) == "0.020000 !!"
    assert format_duration(0.05, 0.01) == "0.050000 !!!"
    assert format_duration(0.05) == "0.050000"


def test_table_grades_phases_at_half_threshold():
    text = render(_result(threshold=0.01), OutputFormat.TABLE, top=20)
    row = next(line for line in text.splitlines() if "SlowProvider" in line)
    # register and boot are graded against 0.005, total against 0.01
    assert "0.020000 !!!" in row
    assert "0.010000 !!" in row
    assert "0.030000 !!" in row
