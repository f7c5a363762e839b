"""
Process Listing for Jobwatch Monitor

One-shot table of the job processes currently running on the host,
sorted by CPU usage.

Author: Jobwatch Team
SPDX-License-Identifier: BUSL-1.1
"""

import time
from collections.abc import Callable

import psutil
from rich.console import Console
from rich.table import Table

from jobwatch.monitor.sampler import ProcessSample, ProcessSampler

# CPU percent is delta-based; a short warm-up gives non-zero readings
PRIME_INTERVAL = 0.5


def process_name(pid: int) -> str:
    """Return the executable name of a pid, or "unknown"."""
    try:
        return psutil.Process(pid).name()
    except (psutil.Error, OSError):
        return "unknown"


def collect_job_processes(
    sampler: ProcessSampler,
    prime_interval: float = PRIME_INTERVAL,
) -> list[ProcessSample]:
    """Sample job processes, highest CPU first."""
    if prime_interval > 0:
        sampler.sample()
        time.sleep(prime_interval)
    samples = sampler.sample()
    return sorted(samples, key=lambda s: s.cpu_percent, reverse=True)


def print_job_processes(
    samples: list[ProcessSample],
    console: Console | None = None,
    name_lookup: Callable[[int], str] = process_name,
) -> None:
    """Print job processes as a table."""
    console = console or Console()

    if not samples:
        console.print("No processes with JOB_NAME found")
        return

    table = Table(title="Jenkins Job Processes", header_style="bold cyan")
    table.add_column("PID", justify="right")
    table.add_column("CPU%", justify="right")
    table.add_column("MEM%", justify="right")
    table.add_column("PROCESS")
    table.add_column("JOB_NAME", style="green")
    table.add_column("BUILD_ID")
    table.add_column("WORKSPACE", style="dim")
    table.add_column("STAGE_NAME")

    for sample in samples:
        table.add_row(
            str(sample.pid),
            f"{sample.cpu_percent:.1f}",
            f"{sample.mem_percent:.1f}",
            name_lookup(sample.pid),
            sample.job_name,
            sample.build_id,
            sample.workspace,
            sample.stage_name,
        )

    console.print(table)
    console.print(f"[green]✓[/green] Total processes found: {len(samples)}")
