import time

import pytest

from dqlitekit.bench_tracker import (
    Measurement,
    MeasurementError,
    Report,
    Tracker,
    Work,
    dur_to_ms,
)


def test_dur_to_ms_format():
    assert dur_to_ms(1_500_000) == "1.500000"


def test_dur_to_ms_whole_milliseconds_have_zero_fraction():
    for ms in (0, 1, 42, 1000):
        text = dur_to_ms(ms * 1_000_000)
        whole, fraction = text.split(".")
        assert int(whole) == ms
        assert fraction == "000000"


def test_dur_to_ms_sub_millisecond_padding():
    whole, fraction = dur_to_ms(7).split(".")
    assert whole == "0"
    assert len(fraction) == 6
    assert int(fraction) == 7


@pytest.mark.parametrize(
    "work, name",
    [(Work.EXEC, "exec"), (Work.QUERY, "query"), (Work.NONE, "none")],
)
def test_work_names_in_reports(work, name):
    tracker = Tracker()
    tracker.measure(time.time_ns(), work)
    assert [str(w) for w in tracker.report()] == [name]


def test_measurement_str():
    assert str(Measurement(5, 1_500_000)) == "5 1.500000"


def test_measurement_error_str():
    error = RuntimeError("boom")
    text = str(MeasurementError(12, error))
    assert text.startswith("12 ")
    assert text.endswith("boom")


def test_measure_and_report():
    tracker = Tracker()
    past = time.time_ns() - 2_000_000
    tracker.measure(past, Work.EXEC)
    tracker.measure(time.time_ns(), Work.EXEC)
    tracker.measure(time.time_ns(), Work.EXEC, RuntimeError("failed"))

    reports = tracker.report()
    assert list(reports) == [Work.EXEC]
    report = reports[Work.EXEC]
    assert report.n == 2
    assert report.n_err == 1
    assert report.measurements[0].start_ns == past
    assert report.measurements[0].duration_ns >= 2_000_000
    assert report.total_duration == sum(m.duration_ns for m in report.measurements)
    assert report.min_duration <= report.avg_duration <= report.max_duration
    assert report.max_duration == max(m.duration_ns for m in report.measurements)
    assert report.min_duration == min(m.duration_ns for m in report.measurements)


def test_work_with_only_errors_is_not_reported():
    tracker = Tracker()
    tracker.measure(time.time_ns(), Work.QUERY, LookupError("no rows"))
    assert tracker.report() == {}


def test_reports_are_per_work():
    tracker = Tracker()
    tracker.measure(time.time_ns(), Work.EXEC)
    tracker.measure(time.time_ns(), Work.QUERY)
    tracker.measure(time.time_ns(), Work.QUERY)
    reports = tracker.report()
    assert set(reports) == {Work.EXEC, Work.QUERY}
    assert reports[Work.EXEC].n == 1
    assert reports[Work.QUERY].n == 2


def test_report_text_layout():
    tracker = Tracker()
    tracker.measure(time.time_ns(), Work.EXEC)
    tracker.measure(time.time_ns(), Work.EXEC, RuntimeError("oops"))
    report = tracker.report()[Work.EXEC]
    lines = str(report).split("\n")
    assert lines[0] == "n 1"
    assert lines[1] == "n_err 1"
    assert lines[2].startswith("avg [ms] ")
    assert lines[3].startswith("max [ms] ")
    assert lines[4].startswith("min [ms] ")
    assert lines[5] == "measurements [timestamp in ns] [ms]"
    assert lines[6] == str(report.measurements[0])
    assert "errors" in lines
    assert str(report.errors[0]) in lines


def test_empty_report_defaults():
    report = Report()
    assert report.n == 0
    assert report.min_duration == 2**63 - 1
    assert report.avg_duration == 0