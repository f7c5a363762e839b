"""
Unit Tests for the series analyzer.
"""

import io

import pytest
from rich.console import Console

from jobwatch.monitor.analyzer import AnalysisResult, analyze_records, print_analysis
from jobwatch.monitor.storage import SeriesRecord, SeriesWriter, read_series


def _record(job: str, cpu: float, mem: float, ts: str = "2024-05-01T12:00:00Z") -> SeriesRecord:
    return SeriesRecord(ts, 1, cpu, mem, job)


def _console() -> Console:
    return Console(file=io.StringIO(), width=120, force_terminal=False)


class TestAnalyzeRecords:
    """Tests for analyze_records()."""

    def test_peaks_per_job(self):
        records = [
            _record("A", 10.0, 20.0, "t1"),
            _record("B", 50.0, 10.0, "t2"),
            _record("A", 30.0, 5.0, "t3"),
        ]

        result = analyze_records(records)

        assert result.record_count == 3
        assert [(p.job_name, p.value, p.timestamp) for p in result.cpu_peaks] == [
            ("B", 50.0, "t2"),
            ("A", 30.0, "t3"),
        ]
        assert [(p.job_name, p.value, p.timestamp) for p in result.mem_peaks] == [
            ("A", 20.0, "t1"),
            ("B", 10.0, "t2"),
        ]

    def test_top_n_limits_results(self):
        records = [_record(f"job{i}", float(i), float(i)) for i in range(10)]

        result = analyze_records(records, top=3)

        assert [p.job_name for p in result.cpu_peaks] == ["job9", "job8", "job7"]
        assert len(result.mem_peaks) == 3

    def test_ties_keep_first_timestamp_and_sort_by_name(self):
        records = [
            _record("b", 40.0, 1.0, "t1"),
            _record("a", 40.0, 1.0, "t2"),
            _record("b", 40.0, 1.0, "t3"),
        ]

        result = analyze_records(records)

        assert [(p.job_name, p.timestamp) for p in result.cpu_peaks] == [("a", "t2"), ("b", "t1")]

    def test_empty(self):
        result = analyze_records([])

        assert result.record_count == 0
        assert result.cpu_peaks == []
        assert result.mem_peaks == []

    def test_reads_written_series(self, tmp_path, make_sample):
        """Job names come from the build_path column, not the pid column."""
        path = tmp_path / "jobs.csv"
        writer = SeriesWriter(path)
        writer.open()

        writer.append(
            [
                SeriesRecord.from_sample(make_sample(pid=10, job_name="deploy", cpu_percent=75.0)),
                SeriesRecord.from_sample(make_sample(pid=11, job_name="build", cpu_percent=12.0)),
            ]
        )
        writer.close()

        result = analyze_records(read_series(path))

        assert result.cpu_peaks[0].job_name == "deploy"
        assert result.cpu_peaks[0].value == pytest.approx(75.0)


class TestPrintAnalysis:
    def test_no_data(self):
        console = _console()

        print_analysis(AnalysisResult(record_count=0), console=console)

        assert "No data to analyze." in console.file.getvalue()

    def test_tables(self):
        console = _console()
        result = analyze_records([_record("build_app", 55.5, 12.25), _record("deploy", 5.0, 40.0)])

        print_analysis(result, console=console)

        output = console.file.getvalue()
        assert "Top 2 Jobs by Peak CPU Usage" in output
        assert "Top 2 Jobs by Peak Memory Usage" in output
        assert "build_app" in output
        assert "55.50%" in output
        assert "Stats generated at:" in output
