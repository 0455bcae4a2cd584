"""
Availability notifications for book instances.

Whenever a copy becomes Available, whether it was just provisioned or
came back from a loan, reservation or maintenance, the listeners are told
so that reservation-queue matching can run. Delivery is fire-and-forget:

- the dispatcher submits each listener call to an executor
- a listener exception is logged and reported to logfire, then dropped
- the transition that triggered the event is already committed and
  never rolled back because of a listener
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future, ThreadPoolExecutor

from ..observability import record_available, report_side_effect_failure

logger = logging.getLogger(__name__)


class AvailabilityListener(ABC):
    """Collaborator told about copies becoming available."""

    @abstractmethod
    def on_instance_available(self, instance_id: str, book_id: str) -> None:
        """Handle a newly available copy."""


class ReservationQueueListener(AvailabilityListener):
    """
    Default listener feeding the reservation queue.

    Queue matching belongs to the circulation side of the library. This
    listener logs each event for operators and counts it in logfire.
    """

    def on_instance_available(self, instance_id: str, book_id: str) -> None:
        logger.info("Book instance %s of book %s is available for the queue", instance_id, book_id)
        record_available(book_id)


class NotificationDispatcher:
    """
    Fans availability events out to listeners without blocking the caller.

    With ``executor=None`` listeners run inline on the calling thread,
    still isolated from the caller's error path.
    """

    def __init__(
        self,
        listeners: list[AvailabilityListener] | None = None,
        executor: Executor | None = None,
    ):
        self.listeners: list[AvailabilityListener] = list(listeners or [])
        self._executor = executor

    @classmethod
    def threaded(
        cls, listeners: list[AvailabilityListener] | None = None, workers: int = 2
    ) -> "NotificationDispatcher":
        """Dispatcher backed by its own small thread pool."""
        return cls(
            listeners,
            ThreadPoolExecutor(max_workers=workers, thread_name_prefix="availability-notify"),
        )

    def dispatch(self, instance_id: str, book_id: str, source: str = "transition") -> list[Future]:
        """
        Notify every listener that an instance became available.

        Returns:
            Futures for submitted deliveries (empty when running inline)
        """
        futures: list[Future] = []
        for listener in self.listeners:
            if self._executor is None:
                self._deliver(listener, instance_id, book_id, source)
                continue
            try:
                futures.append(
                    self._executor.submit(self._deliver, listener, instance_id, book_id, source)
                )
            except RuntimeError as e:
                # Executor already shut down
                logger.exception("Could not schedule availability notification")
                report_side_effect_failure(
                    "notification", e, instance_id=instance_id, book_id=book_id, source=source
                )
        return futures

    def _deliver(
        self, listener: AvailabilityListener, instance_id: str, book_id: str, source: str
    ) -> None:
        try:
            listener.on_instance_available(instance_id, book_id)
        except Exception as e:
            logger.exception(
                "Availability listener %s failed for instance %s",
                type(listener).__name__,
                instance_id,
            )
            report_side_effect_failure(
                "notification",
                e,
                instance_id=instance_id,
                book_id=book_id,
                source=source,
                listener=type(listener).__name__,
            )

    def shutdown(self, wait: bool = True) -> None:
        """Stop the executor, optionally waiting for queued deliveries."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
