"""Thread-safe pipeline counters."""

import threading
import time


class Metrics:
    def __init__(self):
        self._lock = threading.Lock()
        self._received = 0
        self._buffered = 0
        self._dropped = 0
        self._batches = 0
        self._lines_emitted = 0
        self._start_time = time.monotonic()

    def record_received(self, buffered: bool):
        """Count one delivered payload, buffered or dropped."""
        with self._lock:
            self._received += 1
            if buffered:
                self._buffered += 1
            else:
                self._dropped += 1

    def record_batch(self, lines: int):
        """Count one non-empty flushed batch and the lines it produced."""
        with self._lock:
            self._batches += 1
            self._lines_emitted += lines

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all counters."""
        with self._lock:
            elapsed = time.monotonic() - self._start_time
            snap = {
                "received": self._received,
                "buffered": self._buffered,
                "dropped": self._dropped,
                "batches": self._batches,
                "lines_emitted": self._lines_emitted,
            }

        snap["elapsed_seconds"] = round(elapsed, 2)
        snap["received_per_second"] = round(snap["received"] / elapsed, 2) if elapsed > 0 else 0.0
        return snap
