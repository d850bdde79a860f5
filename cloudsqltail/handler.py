"""Message callback run by the subscriber workers."""

import logging
from typing import Callable, Protocol

from cloudsqltail.buffer import RecordBuffer
from cloudsqltail.metrics import Metrics
from cloudsqltail.models import decode_record

logger = logging.getLogger(__name__)


class Message(Protocol):
    """The slice of a Pub/Sub message the handler relies on."""

    data: bytes

    def ack(self) -> None: ...


def log_dropped_payload(data: bytes):
    """Drop hook that reports undecodable payloads."""
    logger.warning("Dropping undecodable payload (%d bytes): %r", len(data), data[:100])


class MessageHandler:
    """Decodes a delivered payload, buffers it, then acknowledges it.

    Undecodable payloads are acknowledged too; redelivering them would fail
    the same way. They are counted and passed to ``on_drop`` when one is set.
    """

    def __init__(
        self,
        buffer: RecordBuffer,
        metrics: Metrics | None = None,
        on_drop: Callable[[bytes], None] | None = None,
    ):
        self._buffer = buffer
        self._metrics = metrics
        self._on_drop = on_drop

    def __call__(self, message: Message):
        record = decode_record(message.data)
        if record is None:
            if self._on_drop is not None:
                self._on_drop(message.data)
        else:
            self._buffer.append(record)

        if self._metrics is not None:
            self._metrics.record_received(buffered=record is not None)
        message.ack()
