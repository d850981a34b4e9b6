from bootprof.evaluation.report import RunReport
from bootprof.schemas import (ComponentRecord, ProfileOptions, ProfileResult, RunSnapshot,
                              RunStatistics, RunStatus)


def _result(components):
    return ProfileResult(
        status=RunStatus.SUCCESS,
        options=ProfileOptions(),
        snapshot=RunSnapshot(components=components),
        statistics=RunStatistics(total_components=len(components),
                                 percentiles={50: 0.01, 100: 0.03}),
    )


def test_full_report_writes_charts_and_markdown(tmp_path):
    result = _result({
        "app.Slow": ComponentRecord(register_time=0.02, boot_time=0.01, total_time=0.03),
        "app.Fast": ComponentRecord(register_time=0.001, boot_time=0.0, total_time=0.001),
    })
    outputs = RunReport(result, tmp_path / "report").generate_full_report()

    assert set(outputs) == {"slowest_plot", "phase_plot", "markdown_report"}
    for path in outputs.values():
        assert path.exists()
    markdown = outputs["markdown_report"].read_text()
    assert "| app.Slow |" in markdown
    assert "P100: 0.030000s" in markdown


def test_empty_run_only_writes_markdown(tmp_path):
    outputs = RunReport(_result({}), tmp_path).generate_full_report()
    assert list(outputs) == ["markdown_report"]
