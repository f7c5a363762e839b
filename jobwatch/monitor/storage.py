"""
Series Storage for Jobwatch Monitor

Persists process samples to an append-only CSV file with daily rotation.
Rows are flushed at the end of every append so nothing is held in memory
across ticks.

File layout:
    timestamp,pid,cpu,mem,build_path
    2024-05-01T12:00:30Z,4242,10.50,20.20,build_app

Rotated files are named <base>.<YYYY-MM-DD><ext> after the day they cover.

Author: Jobwatch Team
SPDX-License-Identifier: BUSL-1.1
"""

import csv
import errno
import logging
import os
from dataclasses import dataclass
from datetime import date, timezone
from pathlib import Path
from typing import TextIO

from jobwatch.monitor.exceptions import RotationError
from jobwatch.monitor.sampler import ProcessSample

logger = logging.getLogger(__name__)

SERIES_HEADER = ["timestamp", "pid", "cpu", "mem", "build_path"]
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True)
class SeriesRecord:
    """One persisted row of the series file."""

    timestamp: str
    pid: int
    cpu_percent: float
    mem_percent: float
    job_name: str

    @classmethod
    def from_sample(cls, sample: ProcessSample) -> "SeriesRecord":
        """Create a record from a process sample."""
        return cls(
            timestamp=sample.sampled_at.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT),
            pid=sample.pid,
            cpu_percent=sample.cpu_percent,
            mem_percent=sample.mem_percent,
            job_name=sample.job_name,
        )

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "SeriesRecord":
        """Parse a CSV row keyed by SERIES_HEADER."""
        return cls(
            timestamp=row["timestamp"],
            pid=int(row["pid"]),
            cpu_percent=float(row["cpu"]),
            mem_percent=float(row["mem"]),
            job_name=row["build_path"],
        )

    def to_row(self) -> list[str]:
        return [
            self.timestamp,
            str(self.pid),
            f"{self.cpu_percent:.2f}",
            f"{self.mem_percent:.2f}",
            self.job_name,
        ]


def rotated_path(path: str | Path, day: date) -> Path:
    """Return the rotated file name for the given day, e.g. data.2024-05-01.csv."""
    path = Path(path)
    return path.with_name(f"{path.stem}.{day.isoformat()}{path.suffix}")


def read_series(path: str | Path) -> list[SeriesRecord]:
    """
    Read all records from a series file.

    Rows that cannot be parsed are skipped with a warning.

    Raises:
        OSError: If the file cannot be opened
    """
    records = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for line_no, row in enumerate(reader, start=2):
            try:
                records.append(SeriesRecord.from_row(row))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed row {line_no} in {path}: {e}")
    return records


class SeriesWriter:
    """
    Append-only CSV writer with daily rotation.

    The writer owns its file handle; only the monitor loop drives it.

    Example:
        writer = SeriesWriter("data/jobs.csv")
        writer.open()
        writer.append([SeriesRecord.from_sample(s) for s in samples])
        writer.rotate(date(2024, 5, 1))
        writer.close()
    """

    def __init__(self, path: str | Path, logger: logging.Logger | None = None):
        """
        Initialize the series writer.

        Args:
            path: Path of the current series file
            logger: Optional logger (defaults to the module logger)
        """
        self.path = Path(path)
        self.logger = logger or logging.getLogger(__name__)
        self._file: TextIO | None = None
        self._writer = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> None:
        """
        Create the output directory if needed and open the series file.

        Raises:
            OSError: If the directory or file cannot be created
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._open_file()
        self.logger.debug(f"Series file opened: {self.path}")

    def _open_file(self) -> None:
        """Open the current path for appending, writing the header if empty."""
        self._file = open(self.path, "a", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file, lineterminator="\n")
        if os.fstat(self._file.fileno()).st_size == 0:
            self._writer.writerow(SERIES_HEADER)
            self._file.flush()

    def append(self, records: list[SeriesRecord]) -> int:
        """
        Append records and flush them to disk.

        Returns:
            Number of records written

        Raises:
            OSError: On write or flush failure, or if the writer is not open
        """
        if self._file is None:
            raise OSError(errno.EBADF, "Series file is not open", str(self.path))

        for record in records:
            self._writer.writerow(record.to_row())
        self._file.flush()
        return len(records)

    def rotate(self, closing_day: date) -> Path:
        """
        Rename the current file after the day it covers and start a fresh one.

        Args:
            closing_day: The day being closed out (not the new day)

        Returns:
            Path of the rotated file

        Raises:
            RotationError: If the rename failed; the original file is reopened
                           and writing continues there
            OSError: If the series file cannot be reopened
        """
        target = rotated_path(self.path, closing_day)
        self.close()

        try:
            # os.rename silently replaces an existing file on POSIX
            if target.exists():
                raise FileExistsError(errno.EEXIST, "Rotated file already exists", str(target))
            os.rename(self.path, target)
        except OSError as e:
            self._open_file()
            raise RotationError(f"Failed to rotate {self.path} to {target}: {e}") from e

        self._open_file()
        return target

    def close(self) -> None:
        """Flush and close the series file. Safe to call more than once."""
        if self._file is None:
            return
        try:
            self._file.flush()
        finally:
            self._file.close()
            self._file = None
            self._writer = None
