"""
Threshold Evaluation for Jobwatch Monitor

Decides which alerts a process sample raises. CPU and memory are checked
independently and both may fire for the same sample.

There is no cooldown or deduplication: a job that stays above a threshold
raises a fresh alert on every tick.

Author: Jobwatch Team
SPDX-License-Identifier: BUSL-1.1
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from jobwatch.monitor.sampler import ProcessSample


class AlertKind(Enum):
    """Kinds of threshold alerts."""

    CPU_HIGH = "CPU_HIGH"
    MEM_HIGH = "MEM_HIGH"


@dataclass(frozen=True)
class ThresholdConfig:
    """Alert thresholds in percent. A value of 0 or below disables the check."""

    cpu_percent: float = 0.0
    mem_percent: float = 0.0

    @property
    def cpu_enabled(self) -> bool:
        return self.cpu_percent > 0

    @property
    def mem_enabled(self) -> bool:
        return self.mem_percent > 0


@dataclass(frozen=True)
class AlertEvent:
    """A threshold crossing observed for one sample."""

    kind: AlertKind
    sample: ProcessSample
    threshold: float
    observed_at: datetime


def evaluate(
    sample: ProcessSample,
    config: ThresholdConfig,
    observed_at: datetime | None = None,
) -> list[AlertEvent]:
    """
    Evaluate a sample against the configured thresholds.

    Args:
        sample: Process sample to check
        config: Thresholds to compare against (inclusive)
        observed_at: Optional event time (defaults to current UTC time)

    Returns:
        Zero, one or two AlertEvents
    """
    observed_at = observed_at or datetime.now(timezone.utc)
    events = []

    if config.cpu_enabled and sample.cpu_percent >= config.cpu_percent:
        events.append(AlertEvent(AlertKind.CPU_HIGH, sample, config.cpu_percent, observed_at))

    if config.mem_enabled and sample.mem_percent >= config.mem_percent:
        events.append(AlertEvent(AlertKind.MEM_HIGH, sample, config.mem_percent, observed_at))

    return events
