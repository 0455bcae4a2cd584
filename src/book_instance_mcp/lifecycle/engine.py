"""
Instance lifecycle engine.

The engine is the only code that changes an instance's status, holder
and due date, and it always changes the three together. One transition
goes through these steps:

1. parse the requested status (bad codes are a BadRequest)
2. run the pre-operation hook (the reservation sweep)
3. load the instance and look up ``(current, target)`` in the table
4. check the reader the rule asks for
5. read ``MaxLoanDuration`` fresh if the rule needs a due date
6. write with one conditional UPDATE; zero rows means a lost race
7. after commit, announce the copy if it became Available
"""

import logging
from collections.abc import Callable
from datetime import date
from contextlib import AbstractContextManager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database.instance_repository import BookInstanceRepository
from ..database.policy_repository import PolicyRepository
from ..database.repository import NotFoundError as RecordNotFoundError
from ..database.session import RepositoryException
from ..models.instance import BookInstance, InstanceStatus, TransitionOutcome
from ..models.policy import MAX_LOAN_DURATION
from ..observability import record_transition, trace_lifecycle_operation
from .errors import (
    BadRequestError,
    ConflictError,
    DependencyFailureError,
    LifecycleError,
    NotFoundError,
)
from .notifications import NotificationDispatcher
from .transitions import (
    Clock,
    ReaderRequirement,
    TransitionRule,
    allowed_targets,
    compute_due_date,
    lookup_rule,
    utc_today,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]
# Builds the policy store for a session; PolicyRepository in production
PolicySourceFactory = Callable[[Session], Any]


class InstanceLifecycleEngine:
    """Validates and executes book instance status transitions."""

    def __init__(
        self,
        session_factory: SessionFactory,
        notifier: NotificationDispatcher | None = None,
        pre_operation_hook: Callable[[], Any] | None = None,
        policy_source: PolicySourceFactory = PolicyRepository,
        clock: Clock = utc_today,
    ):
        self._session_factory = session_factory
        self._notifier = notifier or NotificationDispatcher()
        self._pre_operation_hook = pre_operation_hook
        self._policy_source = policy_source
        self._clock = clock

    def request_transition(
        self,
        instance_id: str,
        target_status: InstanceStatus | str,
        requesting_user_id: str | None = None,
        *,
        notify: bool = True,
    ) -> TransitionOutcome:
        """
        Move an instance to ``target_status``.

        Args:
            instance_id: Instance to change
            target_status: Status member or one-letter code (A, L, R, M)
            requesting_user_id: Reader for transitions into Loaned
            notify: Announce the copy when it becomes Available

        Returns:
            The executed transition

        Raises:
            NotFoundError: Unknown instance
            BadRequestError: Unknown status or missing reader
            ConflictError: Transition not allowed, wrong reader, or lost race
            DependencyFailureError: Storage or policy unavailable
        """
        try:
            target = InstanceStatus.parse(target_status)
        except ValueError as e:
            raise BadRequestError(str(e)) from e

        reader = requesting_user_id.strip() if isinstance(requesting_user_id, str) else None

        if self._pre_operation_hook is not None:
            self._pre_operation_hook()

        with trace_lifecycle_operation(
            "transition", instance_id=instance_id, target_status=target.value
        ) as span:
            try:
                with self._session_factory() as session:
                    outcome = self._apply(session, instance_id, target, reader or None)
            except LifecycleError:
                raise
            except (RepositoryException, SQLAlchemyError) as e:
                logger.exception("Storage failure while changing instance %s", instance_id)
                raise DependencyFailureError(f"Book instance storage unavailable: {e!s}") from e

            span.set_attribute("lifecycle.previous_status", outcome.previous_status.value)

        record_transition(outcome.previous_status.value, outcome.status.value)
        logger.info(
            "Instance %s: %s -> %s (holder=%s, available_by=%s)",
            instance_id,
            outcome.previous_status.value,
            outcome.status.value,
            outcome.user_id,
            outcome.available_by,
        )

        if notify and outcome.status == InstanceStatus.AVAILABLE:
            self._notifier.dispatch(outcome.instance_id, outcome.book_id)

        return outcome

    def _apply(
        self, session: Session, instance_id: str, target: InstanceStatus, reader: str | None
    ) -> TransitionOutcome:
        repo = BookInstanceRepository(session)
        current = repo.find_by_id(instance_id)
        if current is None:
            raise NotFoundError(f"Book instance {instance_id} not found")

        rule = lookup_rule(current.status, target)
        if rule is None:
            raise ConflictError(self._conflict_message(current.status, target))

        holder = self._resolve_holder(rule, current, reader)
        available_by = None
        if rule.uses_loan_policy:
            available_by = self._due_date(session)

        written = repo.update_fields(
            instance_id,
            expected_status=current.status,
            expected_user_id=current.user_id,
            status=target,
            user_id=holder,
            available_by=available_by,
        )
        if not written:
            raise ConflictError(
                f"Book instance {instance_id} changed while the request was processed; retry"
            )

        return TransitionOutcome(
            instance_id=instance_id,
            book_id=current.book_id,
            previous_status=current.status,
            status=target,
            user_id=holder,
            available_by=available_by,
        )

    def _resolve_holder(
        self, rule: TransitionRule, current: BookInstance, reader: str | None
    ) -> str | None:
        """Holder to write for ``rule``, checking the reader it requires."""
        if rule.reader == ReaderRequirement.NONE:
            return None

        if reader is None:
            raise BadRequestError(
                f"missing required reader: {rule.current.label} -> {rule.target.label} "
                "needs the reader's user id"
            )

        if rule.reader == ReaderRequirement.CURRENT_HOLDER and reader != current.user_id:
            raise ConflictError(
                f"Book instance {current.instance_id} is reserved for another reader"
            )

        return reader

    def _loan_duration(self, session: Session) -> int:
        try:
            days = self._policy_source(session).get_policy_value(MAX_LOAN_DURATION)
        except RecordNotFoundError as e:
            raise DependencyFailureError(f"{MAX_LOAN_DURATION} policy is not configured") from e

        if days < 0:
            raise DependencyFailureError(f"{MAX_LOAN_DURATION} policy is negative: {days}")
        return days

    def _due_date(self, session: Session) -> date:
        days = self._loan_duration(session)
        try:
            return compute_due_date(self._clock(), days)
        except OverflowError as e:
            raise DependencyFailureError(
                f"{MAX_LOAN_DURATION} policy gives a due date out of range: {days} days"
            ) from e

    @staticmethod
    def _conflict_message(current: InstanceStatus, target: InstanceStatus) -> str:
        allowed = " or ".join(f"'{status.value}'" for status in allowed_targets(current))
        return (
            f"Cannot change the status of a {current.label.lower()} book to "
            f"'{target.value}'; allowed: {allowed}"
        )
