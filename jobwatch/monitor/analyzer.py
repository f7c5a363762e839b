"""
Series Analyzer for Jobwatch Monitor

Reports the jobs with the highest peak CPU and memory usage recorded in a
series file.

Author: Jobwatch Team
SPDX-License-Identifier: BUSL-1.1
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from rich.console import Console
from rich.table import Table

from jobwatch.monitor.storage import SeriesRecord

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 5


@dataclass
class JobPeak:
    """Peak value of one metric for one job."""

    job_name: str
    value: float
    timestamp: str


@dataclass
class _JobStats:
    peak_cpu: float = 0.0
    peak_cpu_time: str = ""
    peak_mem: float = 0.0
    peak_mem_time: str = ""


@dataclass
class AnalysisResult:
    """Top jobs by peak usage."""

    record_count: int
    cpu_peaks: list[JobPeak] = field(default_factory=list)
    mem_peaks: list[JobPeak] = field(default_factory=list)


def analyze_records(records: list[SeriesRecord], top: int = DEFAULT_TOP_N) -> AnalysisResult:
    """
    Find the top jobs by peak CPU and peak memory usage.

    Args:
        records: Series records to analyze
        top: Number of jobs to keep per metric

    Returns:
        AnalysisResult with peaks sorted in descending order
    """
    stats: dict[str, _JobStats] = {}

    for record in records:
        job = stats.setdefault(record.job_name, _JobStats())
        if record.cpu_percent > job.peak_cpu:
            job.peak_cpu = record.cpu_percent
            job.peak_cpu_time = record.timestamp
        if record.mem_percent > job.peak_mem:
            job.peak_mem = record.mem_percent
            job.peak_mem_time = record.timestamp

    cpu_peaks = [JobPeak(name, s.peak_cpu, s.peak_cpu_time) for name, s in stats.items()]
    mem_peaks = [JobPeak(name, s.peak_mem, s.peak_mem_time) for name, s in stats.items()]
    cpu_peaks.sort(key=lambda p: (-p.value, p.job_name))
    mem_peaks.sort(key=lambda p: (-p.value, p.job_name))

    return AnalysisResult(
        record_count=len(records),
        cpu_peaks=cpu_peaks[: max(0, top)],
        mem_peaks=mem_peaks[: max(0, top)],
    )


def _peak_table(title: str, peaks: list[JobPeak]) -> Table:
    table = Table(title=title, header_style="bold cyan", title_justify="left")
    table.add_column("Job", style="green")
    table.add_column("Peak", justify="right")
    table.add_column("At", style="dim")
    for peak in peaks:
        table.add_row(peak.job_name, f"{peak.value:6.2f}%", peak.timestamp)
    return table


def print_analysis(result: AnalysisResult, console: Console | None = None) -> None:
    """Print the analysis as two tables."""
    console = console or Console()

    if result.record_count == 0:
        console.print("No data to analyze.")
        return

    top = len(result.cpu_peaks)
    console.print(_peak_table(f"Top {top} Jobs by Peak CPU Usage", result.cpu_peaks))
    console.print()
    console.print(_peak_table(f"Top {top} Jobs by Peak Memory Usage", result.mem_peaks))
    console.print()
    console.print(f"[dim]Stats generated at: {datetime.now().strftime('%a, %d %b %Y %H:%M:%S')}[/dim]")
