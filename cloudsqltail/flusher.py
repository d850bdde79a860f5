"""Periodic flusher — drains the buffer, orders by timestamp, prints lines."""

import logging
import sys
import threading
import time
from operator import attrgetter
from typing import TextIO

from cloudsqltail.buffer import RecordBuffer
from cloudsqltail.metrics import Metrics
from cloudsqltail.models import Record, format_timestamp

logger = logging.getLogger(__name__)


def format_record(record: Record) -> str | None:
    """Render a record as an output line, or None if it produces no output.

    Lines opening a log entry (``[``) get the timestamp prefix; continuation
    lines are printed as-is so multi-line entries stay readable downstream.
    """
    if not record.text:
        return None
    if record.starts_entry:
        return f"[{format_timestamp(record.timestamp_ns)}]: {record.text}"
    return record.text


def sort_batch(batch: list[Record]) -> list[Record]:
    """Stable sort by timestamp; equal timestamps keep arrival order."""
    return sorted(batch, key=attrgetter("timestamp_ns"))


class Flusher:
    """Drains a RecordBuffer on a fixed period and writes it to a stream."""

    def __init__(
        self,
        buffer: RecordBuffer,
        interval: float,
        stream: TextIO | None = None,
        metrics: Metrics | None = None,
    ):
        if interval <= 0:
            raise ValueError(f"flush interval must be > 0, got {interval}")
        self._buffer = buffer
        self._interval = interval
        self._stream = stream if stream is not None else sys.stdout
        self._metrics = metrics
        self._last_batch_size = 0
        self._flush_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self):
        """Start the background flush thread."""
        self._thread = threading.Thread(target=self._run, name="flusher", daemon=True)
        self._thread.start()
        logger.info("Flusher started (interval=%.3fs)", self._interval)

    def stop(self):
        """Stop the timer and flush whatever is still buffered."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
        lines = self.flush()
        logger.info("Flusher stopped (final flush wrote %d lines)", lines)

    def flush(self) -> int:
        """Run one drain/sort/emit cycle. Returns the number of lines written."""
        with self._flush_lock:
            batch = self._buffer.drain_and_reset(self._last_batch_size)
            if not batch:
                return 0
            self._last_batch_size = len(batch)

            lines = 0
            for record in sort_batch(batch):
                line = format_record(record)
                if line is None:
                    continue
                self._stream.write(line + "\n")
                self._stream.flush()
                lines += 1

        if self._metrics is not None:
            self._metrics.record_batch(lines)
        logger.debug("Flushed batch of %d records (%d lines)", len(batch), lines)
        return lines

    def _run(self):
        """Fixed-rate ticker; missed ticks are skipped, not queued."""
        next_tick = time.monotonic() + self._interval
        while not self._stop_event.wait(max(next_tick - time.monotonic(), 0)):
            self.flush()
            next_tick += self._interval
            now = time.monotonic()
            while next_tick <= now:
                next_tick += self._interval
