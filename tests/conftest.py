"""Shared fixtures for Jobwatch tests."""

import logging
from datetime import datetime, timezone

import pytest

from jobwatch.monitor.sampler import ProcessSample

JOB_ENV = [
    "JOB_NAME=build_app",
    "BUILD_ID=42",
    "STAGE_NAME=test",
    "WORKSPACE=/ws/build_app",
]


class FakeProcess:
    """In-memory ProcessProvider for tests."""

    def __init__(
        self,
        pid: int,
        environ=None,
        cpu: float = 0.0,
        mem: float = 0.0,
        env_error: Exception | None = None,
        cpu_error: Exception | None = None,
        mem_error: Exception | None = None,
    ):
        self._pid = pid
        self._environ = environ if environ is not None else []
        self._cpu = cpu
        self._mem = mem
        self._env_error = env_error
        self._cpu_error = cpu_error
        self._mem_error = mem_error
        self.cpu_reads = 0

    @property
    def pid(self) -> int:
        return self._pid

    def environ(self):
        if self._env_error:
            raise self._env_error
        return self._environ

    def cpu_percent(self) -> float:
        self.cpu_reads += 1
        if self._cpu_error:
            raise self._cpu_error
        return self._cpu

    def memory_percent(self) -> float:
        if self._mem_error:
            raise self._mem_error
        return self._mem


@pytest.fixture
def sampled_at() -> datetime:
    return datetime(2024, 5, 1, 12, 0, 30, tzinfo=timezone.utc)


@pytest.fixture
def make_sample(sampled_at):
    """Factory for ProcessSample objects with sensible defaults."""

    def _make(**overrides) -> ProcessSample:
        values = {
            "pid": 1234,
            "job_name": "build_app",
            "build_id": "42",
            "stage_name": "test",
            "workspace": "/ws/build_app",
            "cpu_percent": 10.5,
            "mem_percent": 20.2,
            "sampled_at": sampled_at,
        }
        values.update(overrides)
        return ProcessSample(**values)

    return _make


@pytest.fixture(autouse=True)
def reset_jobwatch_logger():
    """Undo setup_logging() so caplog keeps seeing jobwatch records."""
    logger = logging.getLogger("jobwatch")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate
