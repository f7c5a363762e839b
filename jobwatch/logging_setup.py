"""Logging configuration for Jobwatch.

Log records are written as one JSON object per line to stdout and, when
configured, to a log file.
"""

import json
import logging
import sys
from datetime import datetime

LOGGER_NAME = "jobwatch"


class JsonFormatter(logging.Formatter):
    """Format records as {"timestamp", "level", "file", "line", "message"}."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).astimezone().isoformat(
                timespec="seconds"
            ),
            "level": record.levelname,
            "file": record.filename,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _level_from_value(value: str | int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_file: str | None = None, level: str | int = "INFO") -> logging.Logger:
    """
    Configure and return the Jobwatch logger.

    Handlers are replaced on each call, so repeated setup does not duplicate
    output. An unopenable log file falls back to stdout only.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = JsonFormatter()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to open log file {log_file}: {e}. Logging to stdout only.")
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    logger.setLevel(_level_from_value(level))
    logger.propagate = False
    return logger
