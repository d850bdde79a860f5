"""Message sources — where delivered payloads come from."""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent import futures
from typing import Callable

from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import pubsub_v1
from google.cloud.pubsub_v1.subscriber.scheduler import ThreadScheduler

from cloudsqltail.handler import Message

logger = logging.getLogger(__name__)


class SubscriptionError(Exception):
    """The subscription could not be set up or stopped delivering."""


class MessageSource(ABC):
    """Delivers payloads to a handler, possibly from many threads at once."""

    @abstractmethod
    def subscribe(self, handler: Callable[[Message], None]):
        """Block delivering messages to ``handler`` until cancelled.

        Returns normally after ``cancel()``; raises SubscriptionError when
        delivery ends for any other reason.
        """

    @abstractmethod
    def cancel(self):
        """Make a blocked ``subscribe`` return.

        Must not block; it is called from signal handlers.
        """


class PubSubSource(MessageSource):
    """Streaming pull from a Google Cloud Pub/Sub subscription.

    ``workers`` sizes the callback thread pool; anything below 1 leaves the
    client library's default scheduler in place.
    """

    def __init__(
        self,
        project: str,
        subscription: str,
        workers: int,
        client: pubsub_v1.SubscriberClient | None = None,
        poll_interval: float = 1.0,
    ):
        try:
            self._client = client if client is not None else pubsub_v1.SubscriberClient()
        except (auth_exceptions.GoogleAuthError, api_exceptions.GoogleAPIError) as exc:
            raise SubscriptionError(f"could not create Pub/Sub client: {exc}") from exc

        self._path = self._client.subscription_path(project, subscription)
        self._workers = workers
        self._poll_interval = poll_interval
        self._cancel_event = threading.Event()

    @property
    def subscription_path(self) -> str:
        return self._path

    def subscribe(self, handler: Callable[[Message], None]):
        scheduler = None
        if self._workers > 0:
            executor = futures.ThreadPoolExecutor(
                max_workers=self._workers, thread_name_prefix="pubsub-recv",
            )
            scheduler = ThreadScheduler(executor=executor)

        try:
            future = self._client.subscribe(self._path, callback=handler, scheduler=scheduler)
        except api_exceptions.GoogleAPIError as exc:
            self._client.close()
            raise SubscriptionError(f"could not subscribe to {self._path}: {exc}") from exc

        logger.info(
            "Receiving from %s (workers=%s)", self._path,
            self._workers if self._workers > 0 else "library default",
        )

        try:
            while not self._cancel_event.is_set():
                try:
                    future.result(timeout=self._poll_interval)
                except futures.TimeoutError:
                    continue
                except futures.CancelledError as exc:
                    if self._cancel_event.is_set():
                        break
                    raise SubscriptionError(f"delivery from {self._path} was cancelled") from exc
                except Exception as exc:
                    raise SubscriptionError(f"delivery from {self._path} stopped: {exc}") from exc
                raise SubscriptionError(f"delivery from {self._path} stopped unexpectedly")
        finally:
            future.cancel()
            self._client.close()

        logger.info("Stopped receiving from %s", self._path)

    def cancel(self):
        self._cancel_event.set()
