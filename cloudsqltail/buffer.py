"""Shared record buffer — many producers append, one flusher drains."""

import threading

from cloudsqltail.models import Record


class RecordBuffer:
    """Lock-guarded list of Records in arrival order.

    The only operations are ``append`` and ``drain_and_reset``; both hold the
    same lock for just the list mutation, so a record is either in the batch a
    drain returns or in the fresh list that replaces it, never both.
    """

    def __init__(self, capacity_hint: int = 0):
        self._lock = threading.Lock()
        self._records: list[Record] = []
        self._capacity_hint = max(capacity_hint, 0)

    def append(self, record: Record):
        with self._lock:
            self._records.append(record)

    def drain_and_reset(self, capacity_hint: int) -> list[Record]:
        """Return every buffered record and swap in an empty list.

        CPython lists cannot reserve capacity without holding elements, so the
        hint is kept for reporting and the new list grows by amortised append.
        """
        with self._lock:
            batch = self._records
            self._records = []
            self._capacity_hint = max(capacity_hint, 0)
        return batch

    @property
    def capacity_hint(self) -> int:
        with self._lock:
            return self._capacity_hint

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
