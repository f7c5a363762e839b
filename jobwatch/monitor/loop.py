"""
Monitor Loop for Jobwatch

Fixed-interval scheduler that drives sampling, persistence, alerting and
gauge publishing. Each tick runs to completion before the next one starts;
a slow tick delays the next one instead of overlapping it.

States:
    STARTING -> RUNNING -> STOPPING -> STOPPED

A loop runs once; STOPPED is terminal.

Author: Jobwatch Team
SPDX-License-Identifier: BUSL-1.1
"""

import logging
import signal
import threading
import time
from collections.abc import Callable
from datetime import date, datetime
from enum import Enum

from jobwatch.monitor.exceptions import CollectionError, RotationError
from jobwatch.monitor.gauges import GaugeSink
from jobwatch.monitor.notifier import AlertDispatcher
from jobwatch.monitor.sampler import ProcessSampler
from jobwatch.monitor.storage import SeriesRecord, SeriesWriter
from jobwatch.monitor.thresholds import AlertKind, ThresholdConfig, evaluate

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30.0
# Upper bound on how long a stop request waits to be noticed
STOP_POLL_INTERVAL = 0.2
STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class MonitorState(Enum):
    """Lifecycle states of the monitor loop."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class MonitorLoop:
    """
    Orchestrates one monitoring session.

    Persistence is disabled by passing writer=None; sampling, gauges and
    alerting keep working in that mode.

    Example:
        loop = MonitorLoop(ProcessSampler(), thresholds, AlertDispatcher(thresholds),
                           writer=SeriesWriter("data/jobs.csv"), gauges=GaugeSink())
        loop.run()  # blocks until SIGINT/SIGTERM
    """

    def __init__(
        self,
        sampler: ProcessSampler,
        thresholds: ThresholdConfig,
        dispatcher: AlertDispatcher,
        writer: SeriesWriter | None = None,
        gauges: GaugeSink | None = None,
        interval: float = DEFAULT_INTERVAL,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the monitor loop.

        Args:
            sampler: Source of process samples
            thresholds: Alert thresholds
            dispatcher: Alert dispatcher
            writer: Optional series writer (None disables persistence)
            gauges: Optional live gauge sink
            interval: Seconds between ticks
            logger: Optional logger (defaults to the module logger)
            clock: Optional local-time clock used for day rotation
        """
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.sampler = sampler
        self.thresholds = thresholds
        self.dispatcher = dispatcher
        self.writer = writer
        self.gauges = gauges
        self.interval = interval
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock or datetime.now

        # None until start(); not one of the lifecycle states
        self._state: MonitorState | None = None
        self._stop_requested = False
        self._day: date | None = None
        self._previous_handlers: dict[int, object] = {}

    @property
    def state(self) -> MonitorState | None:
        """Current lifecycle state, or None before start()."""
        return self._state

    @property
    def current_day(self) -> date | None:
        """Day covered by the current series file."""
        return self._day

    @property
    def persistence_enabled(self) -> bool:
        return self.writer is not None

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        """Ask the loop to stop before its next tick."""
        # Called from signal handlers, so no locks may be taken here
        self._stop_requested = True

    def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; return True as soon as a stop is requested."""
        deadline = time.monotonic() + timeout
        while not self._stop_requested:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(remaining, STOP_POLL_INTERVAL))
        return True

    def _handle_signal(self, signum, _frame) -> None:
        self.logger.info(f"Received {signal.Signals(signum).name}, stopping...")
        self.request_stop()

    def _install_signal_handlers(self) -> None:
        # signal.signal only works from the main thread
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in STOP_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers = {}

    def start(self) -> None:
        """
        Enter STARTING: open the series file and record the rotation day.

        Raises:
            RuntimeError: If the loop has already been started
            OSError: If the series file or its directory cannot be created
        """
        if self._state is not None:
            raise RuntimeError(f"Monitor loop cannot be started from state {self._state.name}")

        self._state = MonitorState.STARTING

        if self.writer is not None:
            try:
                self.writer.open()
            except OSError:
                self._state = MonitorState.STOPPED
                raise
            self.logger.info(f"Starting process monitoring. Writing to {self.writer.path}")
        else:
            self.logger.info("Collection disabled via config. Only alerting will be active.")

        self._day = self._clock().date()

    def run(self) -> None:
        """
        Run until a stop is requested.

        Raises:
            RuntimeError: If the loop has already been started
            OSError: On fatal persistence failures (initial open, reopen after
                     rotation)
        """
        self.start()
        self._install_signal_handlers()
        self._state = MonitorState.RUNNING
        self.logger.info(f"Monitoring every {self.interval:g}s. Press Ctrl+C to stop...")

        try:
            next_tick = time.monotonic() + self.interval
            while not self._wait_for_stop(next_tick - time.monotonic()):
                self.tick()
                next_tick = max(next_tick + self.interval, time.monotonic())
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Enter STOPPING, release resources and end in STOPPED."""
        if self._state is None or self._state == MonitorState.STOPPED:
            return

        self._state = MonitorState.STOPPING
        try:
            if self.writer is not None:
                self.writer.close()
        finally:
            self._restore_signal_handlers()
            self._state = MonitorState.STOPPED
            self.logger.info("Exiting...")

    def _check_rotation(self, today: date) -> None:
        """Rotate the series file once per detected day change."""
        if self.writer is None or self._day is None or today == self._day:
            return

        self.logger.info("Rotating log file...")
        closing_day = self._day
        # Advance first so a failed rename is not retried on every tick
        self._day = today
        try:
            rotated = self.writer.rotate(closing_day)
        except RotationError as e:
            self.logger.error(f"Failed to rotate log file: {e}")
            return
        self.logger.info(f"Log rotated to {rotated}. New file: {self.writer.path}")

    def tick(self) -> int:
        """
        Run one sampling cycle.

        Returns:
            Number of job processes sampled (0 when collection failed)
        """
        if self.writer is not None:
            self._check_rotation(self._clock().date())

        try:
            samples = self.sampler.sample()
        except CollectionError as e:
            self.logger.error(f"Error getting Jenkins processes: {e}")
            return 0

        if self.writer is not None:
            try:
                self.writer.append([SeriesRecord.from_sample(s) for s in samples])
            except OSError as e:
                self.logger.error(f"Failed to write series records: {e}")

        for sample in samples:
            for event in evaluate(sample, self.thresholds):
                label = "CPU" if event.kind is AlertKind.CPU_HIGH else "Memory"
                observed = (
                    sample.cpu_percent if event.kind is AlertKind.CPU_HIGH else sample.mem_percent
                )
                self.logger.info(
                    f"High {label} usage detected for job {sample.job_name} (PID {sample.pid}): "
                    f"{observed:.2f}% (Threshold: {event.threshold:.2f}%)"
                )
                self.dispatcher.dispatch(event)

        if self.gauges is not None:
            self.gauges.publish(samples)

        if self.writer is not None:
            self.logger.info(f"Collected data for {len(samples)} processes")
        else:
            self.logger.info(f"Monitored {len(samples)} processes (Collection Disabled)")
        return len(samples)
