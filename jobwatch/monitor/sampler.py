"""
Process Sampler for Jobwatch Monitor

Finds build-job processes in the host process table using psutil.
A process is a job process when its environment carries a JOB_NAME marker;
BUILD_ID, STAGE_NAME and WORKSPACE are picked up when present.

Important Notes:
    - CPU percent is delta-based between calls (psutil semantics). The first
      reading for a newly seen pid is 0.0 and is kept as-is.
    - Samples are only valid for the tick that produced them; pids are
      recycled by the OS.

Author: Jobwatch Team
SPDX-License-Identifier: BUSL-1.1
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import psutil

from jobwatch.monitor.exceptions import CollectionError

logger = logging.getLogger(__name__)

# Environment markers exported by the CI agent into every build step
JOB_NAME_VAR = "JOB_NAME"
BUILD_ID_VAR = "BUILD_ID"
STAGE_NAME_VAR = "STAGE_NAME"
WORKSPACE_VAR = "WORKSPACE"

# Per-process failures that only exclude that one process
SOFT_ERRORS = (psutil.Error, OSError)


@dataclass(frozen=True)
class JobEnvironment:
    """Job identity fields recognised in a process environment."""

    job_name: str
    build_id: str = ""
    stage_name: str = ""
    workspace: str = ""


@dataclass(frozen=True)
class ProcessSample:
    """CPU and memory usage of one job process at one tick."""

    pid: int
    job_name: str
    build_id: str
    stage_name: str
    workspace: str
    cpu_percent: float
    mem_percent: float
    sampled_at: datetime


class ProcessProvider(Protocol):
    """The subset of process information the sampler needs."""

    @property
    def pid(self) -> int: ...

    def environ(self) -> Mapping[str, str] | Iterable[str]: ...

    def cpu_percent(self) -> float: ...

    def memory_percent(self) -> float: ...


class PsutilProcess:
    """Adapts a psutil.Process to the ProcessProvider protocol."""

    def __init__(self, process: psutil.Process):
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    def environ(self) -> dict[str, str]:
        return self._process.environ()

    def cpu_percent(self) -> float:
        # interval=None compares against the previous call on this object
        return self._process.cpu_percent(interval=None)

    def memory_percent(self) -> float:
        return self._process.memory_percent()


def _as_mapping(environ: Mapping[str, str] | Iterable[str]) -> Mapping[str, str]:
    """Normalise an environment given as a mapping or as KEY=VALUE strings."""
    if isinstance(environ, Mapping):
        return environ

    parsed: dict[str, str] = {}
    for entry in environ:
        key, sep, value = entry.partition("=")
        if sep:
            parsed[key] = value
    return parsed


def extract_job_environment(
    environ: Mapping[str, str] | Iterable[str],
) -> JobEnvironment | None:
    """
    Extract job identity fields from a process environment.

    Args:
        environ: Environment as a mapping or a sequence of KEY=VALUE strings

    Returns:
        JobEnvironment, or None when the JOB_NAME marker is missing or empty
    """
    env = _as_mapping(environ)
    job_name = env.get(JOB_NAME_VAR, "")
    if not job_name:
        return None

    return JobEnvironment(
        job_name=job_name,
        build_id=env.get(BUILD_ID_VAR, ""),
        stage_name=env.get(STAGE_NAME_VAR, ""),
        workspace=env.get(WORKSPACE_VAR, ""),
    )


def build_sample(
    process: ProcessProvider,
    environ: Mapping[str, str] | Iterable[str],
    sampled_at: datetime,
) -> ProcessSample | None:
    """
    Build a sample for a process if it belongs to a job.

    Metrics are only read for job processes. A failure reading either metric
    excludes the process.
    """
    job = extract_job_environment(environ)
    if job is None:
        return None

    try:
        cpu = process.cpu_percent()
        mem = process.memory_percent()
    except SOFT_ERRORS as e:
        logger.debug(f"Skipping pid {process.pid}: usage unavailable ({e})")
        return None

    return ProcessSample(
        pid=process.pid,
        job_name=job.job_name,
        build_id=job.build_id,
        stage_name=job.stage_name,
        workspace=job.workspace,
        cpu_percent=float(cpu or 0.0),
        mem_percent=float(mem or 0.0),
        sampled_at=sampled_at,
    )


class ProcessSampler:
    """
    Samples job processes from the OS process table.

    Example:
        sampler = ProcessSampler()
        for sample in sampler.sample():
            print(sample.job_name, sample.cpu_percent)
    """

    def __init__(
        self,
        process_iter: Callable[[], Iterable[ProcessProvider]] | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the process sampler.

        Args:
            process_iter: Optional callable returning the processes to inspect.
                          Defaults to psutil.process_iter(), whose cached
                          Process objects keep CPU deltas between ticks.
            logger: Optional logger (defaults to the module logger)
        """
        self._process_iter = process_iter or self._psutil_processes
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _psutil_processes() -> Iterable[ProcessProvider]:
        return [PsutilProcess(p) for p in psutil.process_iter()]

    def sample(self, now: datetime | None = None) -> list[ProcessSample]:
        """
        Collect one sample per job process.

        Args:
            now: Optional sample time (defaults to current UTC time)

        Returns:
            Samples in no particular order

        Raises:
            CollectionError: If the process table cannot be enumerated
        """
        sampled_at = now or datetime.now(timezone.utc)

        try:
            processes = list(self._process_iter())
        except Exception as e:
            raise CollectionError(f"Failed to enumerate processes: {e}") from e

        samples = []
        for process in processes:
            try:
                environ = process.environ()
            except SOFT_ERRORS as e:
                self.logger.debug(f"Skipping pid {process.pid}: environment unavailable ({e})")
                continue

            sample = build_sample(process, environ, sampled_at)
            if sample is not None:
                samples.append(sample)

        return samples
