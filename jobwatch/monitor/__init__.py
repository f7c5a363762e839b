"""
Jobwatch Monitor Module

Samples build-job processes, persists their usage, publishes live gauges
and raises threshold alerts.
"""

from jobwatch.monitor.exceptions import CollectionError, RotationError
from jobwatch.monitor.loop import MonitorLoop, MonitorState
from jobwatch.monitor.notifier import AlertDispatcher, DeliveryResult, SlackNotifier
from jobwatch.monitor.sampler import ProcessSample, ProcessSampler
from jobwatch.monitor.storage import SeriesRecord, SeriesWriter
from jobwatch.monitor.thresholds import AlertEvent, AlertKind, ThresholdConfig

__all__ = [
    "AlertDispatcher",
    "AlertEvent",
    "AlertKind",
    "CollectionError",
    "DeliveryResult",
    "MonitorLoop",
    "MonitorState",
    "ProcessSample",
    "ProcessSampler",
    "RotationError",
    "SeriesRecord",
    "SeriesWriter",
    "SlackNotifier",
    "ThresholdConfig",
]
