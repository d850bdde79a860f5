"""Bridge coordinator — wires source, buffer, flusher and liveness endpoint."""

import logging
import threading
from typing import TextIO

from cloudsqltail.buffer import RecordBuffer
from cloudsqltail.config import Config
from cloudsqltail.flusher import Flusher
from cloudsqltail.handler import MessageHandler, log_dropped_payload
from cloudsqltail.health import HealthServer, HealthServerError
from cloudsqltail.metrics import Metrics
from cloudsqltail.source import MessageSource, SubscriptionError

logger = logging.getLogger(__name__)


class LogTailBridge:
    """Receives records from a MessageSource and prints them in timestamp order.

    ``run()`` blocks on the source. ``stop()`` ends it with exit code 0,
    ``fail()`` with exit code 1; either way the buffer gets a final flush.
    """

    def __init__(
        self,
        config: Config,
        source: MessageSource,
        stream: TextIO | None = None,
        serve_health: bool = True,
    ):
        self._config = config
        self._source = source
        self.metrics = Metrics()
        self.buffer = RecordBuffer()
        self._flusher = Flusher(self.buffer, config.flush_interval, stream=stream, metrics=self.metrics)
        self._handler = MessageHandler(
            self.buffer,
            metrics=self.metrics,
            on_drop=log_dropped_payload if config.log_dropped else None,
        )
        self._health = (
            HealthServer(config.health_host, config.health_port, on_error=self.fail)
            if serve_health else None
        )
        self._lock = threading.Lock()
        self._exit_code = 0

    @property
    def exit_code(self) -> int:
        with self._lock:
            return self._exit_code

    @property
    def health_address(self):
        return self._health.server_address if self._health else None

    def run(self) -> int:
        """Serve until stopped or a fatal error occurs. Returns the exit code."""
        self._flusher.start()
        try:
            if self._health is not None:
                self._health.start()
            self._source.subscribe(self._handler)
        except (SubscriptionError, HealthServerError) as exc:
            self._record_failure(exc)
        finally:
            if self._health is not None:
                self._health.stop()
            self._flusher.stop()
            logger.info("Bridge stopped. Stats: %s", self.metrics.snapshot())
        return self.exit_code

    def stop(self):
        """Request an orderly shutdown."""
        logger.info("Shutdown requested")
        self._source.cancel()

    def fail(self, exc: Exception):
        """Abort from another thread; ``run()`` will return 1."""
        self._record_failure(exc)
        self._source.cancel()

    def _record_failure(self, exc: Exception):
        logger.error("Fatal: %s", exc)
        with self._lock:
            self._exit_code = 1
