"""
Reservation expiry sweeper.

Reserved copies whose ``available_by`` date is before today go back to
Available with holder and date cleared. The sweep is a hygiene pass
that runs ahead of status reads and writes:

- each revert is its own conditional UPDATE, so a copy that was loaned
  out between the scan and the write is left alone
- running it twice changes nothing the second time
- it never raises; failures are logged and the caller carries on
- a time budget bounds how long the caller waits, lock waits included,
  and rows left over are picked up by the next sweep
"""

import logging
import time
from collections.abc import Callable
from contextlib import AbstractContextManager

from sqlalchemy.orm import Session

from ..database.instance_repository import BookInstanceRepository
from ..database.session import LOCK_TIMEOUT_KEY, RepositoryException
from ..observability import record_swept, report_side_effect_failure, trace_lifecycle_operation
from .transitions import Clock, utc_today

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]


class ReservationSweeper:
    """Reverts lapsed reservations to Available."""

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Clock = utc_today,
        timeout_seconds: float = 2.0,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self.timeout_seconds = timeout_seconds

    def sweep(self) -> int:
        """
        Revert every expired reservation that fits in the time budget.

        Returns:
            Number of instances reverted (0 when the sweep failed)
        """
        today = self._clock()
        deadline = time.monotonic() + self.timeout_seconds
        reverted = 0

        try:
            with trace_lifecycle_operation("sweep", today=today.isoformat()) as span:
                with self._session_factory() as session:
                    session.info[LOCK_TIMEOUT_KEY] = self.timeout_seconds
                    repo = BookInstanceRepository(session)
                    expired = repo.find_expired_reservation_ids(today)

                    for instance_id in expired:
                        remaining = deadline - time.monotonic()
                        if remaining <= 0:
                            logger.warning(
                                "Reservation sweep stopped after %d of %d instances (%.1fs budget)",
                                reverted,
                                len(expired),
                                self.timeout_seconds,
                            )
                            break
                        session.info[LOCK_TIMEOUT_KEY] = remaining
                        if repo.revert_expired_reservation(instance_id, today):
                            reverted += 1
                            logger.info("Reservation on instance %s expired, now available", instance_id)

                span.set_attribute("lifecycle.swept", reverted)
        except RepositoryException as e:
            logger.exception("Reservation sweep failed; continuing without it")
            report_side_effect_failure("sweep", e, reverted=reverted)
        except Exception as e:
            logger.exception("Unexpected error during reservation sweep; continuing without it")
            report_side_effect_failure("sweep", e, reverted=reverted)

        record_swept(reverted)
        return reverted

    __call__ = sweep
