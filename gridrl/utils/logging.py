"""
Logging utilities for training runs.

This module provides:
- setup_logger: Configure the gridrl logger hierarchy (console and/or file)
- get_logger: Fetch a named logger under the gridrl namespace
- SafeCSVLogger: Per-episode CSV rows with periodic flushing
- MetricsTracker: Running statistics for step and episode metrics
"""

import csv
import sys
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np


DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROOT_LOGGER = "gridrl"


# =============================================================================
# Python Logging Setup
# =============================================================================

class _FlushingFileHandler(logging.FileHandler):
    """File handler that hits the disk after every record."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        self.flush()


def _level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return logging.getLevelName(level.upper())


def setup_logger(
    name: str = ROOT_LOGGER,
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Attach console and/or file handlers to a logger.

    Calling it again for the same name replaces the previous handlers.
    Library modules log to children of "gridrl" (gridrl.trainer,
    gridrl.env, ...), so configuring "gridrl" once covers all of them.

    Args:
        name: Logger name
        level: Threshold for the logger and its console handler
        log_file: Optional path; parent directories are created. The file
            receives every record regardless of level.
        console: Log to stdout
        format_string: Record format (timestamp, level and name by default)

    Returns:
        The configured logger. It does not propagate to the root logger.

    Example:
        >>> logger = setup_logger("gridrl", level="DEBUG", log_file="run/training.log")
        >>> logger.info("Training started")
    """
    threshold = _level(level)
    logger = logging.getLogger(name)
    logger.setLevel(threshold)
    logger.propagate = False

    while logger.handlers:
        old = logger.handlers[0]
        logger.removeHandler(old)
        old.close()

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = []

    if console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setLevel(threshold)
        handlers.append(stream)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = _FlushingFileHandler(path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Logger under the gridrl namespace.

    get_logger("trainer") and get_logger("gridrl.trainer") are the same logger.
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


# =============================================================================
# Episode CSV
# =============================================================================

class SafeCSVLogger:
    """
    Row-per-episode CSV writer that survives an interrupted run.

    The header is on disk as soon as the logger exists, and rows are
    flushed every flush_every writes. Columns missing from a row stay
    empty. Keys outside fieldnames are dropped, so a whole diagnostics
    dict can be passed in.

    Args:
        filepath: Destination file (overwritten)
        fieldnames: Column order
        flush_every: Rows between flushes

    Example:
        >>> with SafeCSVLogger("results/training.csv", ["episode", "total_reward"]) as csv_log:
        ...     csv_log.log({"episode": 1, "total_reward": -12.0})
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        fieldnames: Iterable[str],
        flush_every: int = 10
    ) -> None:
        self.filepath = Path(filepath)
        self.fieldnames = list(fieldnames)
        self.flush_every = max(1, int(flush_every))
        self._rows = 0
        self._unflushed = 0

        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self.filepath.open('w', newline='', encoding='utf-8')
        self._writer = csv.DictWriter(
            self._handle, fieldnames=self.fieldnames, restval='', extrasaction='ignore'
        )
        self._writer.writeheader()
        self._handle.flush()

    @property
    def closed(self) -> bool:
        return self._handle.closed

    @property
    def row_count(self) -> int:
        """Rows written so far, header excluded."""
        return self._rows

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError(f"SafeCSVLogger for {self.filepath} is closed")

    def log(self, row: Dict[str, Any]) -> None:
        """
        Append one row.

        Raises:
            RuntimeError: If the logger was closed
        """
        self._check_open()
        self._writer.writerow(row)
        self._rows += 1
        self._unflushed += 1
        if self._unflushed >= self.flush_every:
            self.flush()

    def log_batch(self, rows: Iterable[Dict[str, Any]]) -> None:
        """Append several rows, then flush."""
        self._check_open()
        for row in rows:
            self._writer.writerow(row)
            self._rows += 1
        self.flush()

    def flush(self) -> None:
        if not self.closed:
            self._handle.flush()
            self._unflushed = 0

    def close(self) -> None:
        if not self.closed:
            self.flush()
            self._handle.close()

    def __enter__(self) -> "SafeCSVLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


# =============================================================================
# Running statistics
# =============================================================================

class MetricsTracker:
    """
    Named series of floats with summary statistics.

    The trainer keeps one per episode and feeds it every step's
    diagnostics; td_error, value_delta and entropy are then summarised
    into the EpisodeSummary.

    Example:
        >>> tracker = MetricsTracker()
        >>> tracker.update_many({"td_error": 0.5, "target_synced": True})
        >>> tracker.update("td_error", -1.5)
        >>> tracker.get_stats("td_error")["mean"]
        -0.5
    """

    EMPTY_STATS = {"mean": 0.0, "std": 0.0, "min": 0.0, "max": 0.0, "count": 0}

    def __init__(self) -> None:
        self.metrics: Dict[str, List[float]] = defaultdict(list)

    def update(self, name: str, value: float) -> None:
        self.metrics[name].append(float(value))

    def update_many(self, values: Dict[str, Any]) -> None:
        """Record every numeric entry; flags, dicts and strings are skipped."""
        for name, value in values.items():
            numeric = isinstance(value, (int, float, np.integer, np.floating))
            if numeric and not isinstance(value, (bool, np.bool_)):
                self.update(name, value)

    def get_stats(self, name: str, window: Optional[int] = None) -> Dict[str, float]:
        """
        mean, std, min, max and count of a metric.

        Args:
            name: Metric name
            window: Only the most recent values (None = all)

        An unknown or empty metric reports zeros with count 0.
        """
        series = self.metrics.get(name)
        if not series:
            return dict(self.EMPTY_STATS)
        data = np.asarray(series[-window:] if window else series)
        return {
            "mean": float(data.mean()),
            "std": float(data.std()),
            "min": float(data.min()),
            "max": float(data.max()),
            "count": int(data.size),
        }

    def last(self, name: str, default: float = 0.0) -> float:
        series = self.metrics.get(name)
        return series[-1] if series else default

    def reset(self, name: Optional[str] = None) -> None:
        """Clear one metric, or all of them when name is None."""
        if name is None:
            self.metrics.clear()
        elif name in self.metrics:
            self.metrics[name] = []
