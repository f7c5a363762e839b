"""
Live Gauges for Jobwatch Monitor

Publishes per-job CPU and memory gauges on an explicitly constructed
Prometheus registry. The scrape endpoint runs on prometheus_client's own
thread and only reads the registry.

Author: Jobwatch Team
SPDX-License-Identifier: BUSL-1.1
"""

import logging
from collections.abc import Iterable

from prometheus_client import CollectorRegistry, Gauge, start_http_server

from jobwatch.monitor.sampler import ProcessSample

logger = logging.getLogger(__name__)

CPU_GAUGE_NAME = "jenkins_job_cpu_usage_percent"
MEM_GAUGE_NAME = "jenkins_job_memory_usage_percent"
GAUGE_LABELS = ["job_name", "pid"]


def parse_listen_address(address: str) -> tuple[str, int]:
    """
    Split a listen address such as ":9100" or "127.0.0.1:9100".

    Raises:
        ValueError: If the port is missing or not a number
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address: {address!r}")
    return host or "0.0.0.0", int(port)


class GaugeSink:
    """
    Per-(job, pid) CPU and memory gauges.

    Label sets for processes not seen in the latest publish are removed so
    recycled pids do not leave stale series behind.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        logger: logging.Logger | None = None,
    ):
        self.registry = registry or CollectorRegistry()
        self.logger = logger or logging.getLogger(__name__)
        self.cpu_gauge = Gauge(
            CPU_GAUGE_NAME,
            "Current CPU usage percentage of Jenkins jobs.",
            GAUGE_LABELS,
            registry=self.registry,
        )
        self.mem_gauge = Gauge(
            MEM_GAUGE_NAME,
            "Current memory usage percentage of Jenkins jobs.",
            GAUGE_LABELS,
            registry=self.registry,
        )
        self._published: set[tuple[str, str]] = set()

    def publish(self, samples: Iterable[ProcessSample]) -> None:
        """Set gauges for this tick's samples and drop series that disappeared."""
        current: set[tuple[str, str]] = set()
        for sample in samples:
            labels = (sample.job_name, str(sample.pid))
            self.cpu_gauge.labels(*labels).set(sample.cpu_percent)
            self.mem_gauge.labels(*labels).set(sample.mem_percent)
            current.add(labels)

        for labels in self._published - current:
            self.cpu_gauge.remove(*labels)
            self.mem_gauge.remove(*labels)

        self._published = current

    def serve(self, listen_address: str) -> None:
        """Start the scrape endpoint on a background thread."""
        host, port = parse_listen_address(listen_address)
        start_http_server(port, addr=host, registry=self.registry)
        self.logger.info(f"Starting Prometheus metrics server on {listen_address}")
