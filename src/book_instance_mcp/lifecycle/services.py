"""Wiring of the lifecycle components for the MCP handlers.

Handlers build a fresh ``LibraryServices`` per call around their session
factory. Only the notification dispatcher is long-lived, because it owns
the worker threads.
"""

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager

from sqlalchemy.orm import Session

from ..config import ServerConfig, get_config
from .catalog import InstanceCatalog
from .engine import InstanceLifecycleEngine
from .notifications import NotificationDispatcher, ReservationQueueListener
from .provisioning import InstanceProvisioner
from .sweeper import ReservationSweeper
from .transitions import Clock, utc_today

logger = logging.getLogger(__name__)


class LibraryServices:
    """The engine, sweeper, provisioner and catalog sharing one configuration."""

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]],
        dispatcher: NotificationDispatcher,
        config: ServerConfig,
        clock: Clock = utc_today,
    ):
        self.sweeper = ReservationSweeper(
            session_factory, clock=clock, timeout_seconds=config.sweep_timeout_seconds
        )
        self.engine = InstanceLifecycleEngine(
            session_factory,
            notifier=dispatcher,
            pre_operation_hook=self.sweeper.sweep,
            clock=clock,
        )
        self.provisioner = InstanceProvisioner(session_factory, notifier=dispatcher)
        self.catalog = InstanceCatalog(
            session_factory,
            pre_operation_hook=self.sweeper.sweep,
            page_size=config.pagination_limit,
        )


class _DispatcherStore:
    """Internal storage for the dispatcher singleton."""

    _instance: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    """Get or create the process-wide notification dispatcher."""
    if _DispatcherStore._instance is None:  # type: ignore[reportPrivateUsage]
        config = get_config()
        _DispatcherStore._instance = NotificationDispatcher.threaded(  # type: ignore[reportPrivateUsage]
            [ReservationQueueListener()], workers=config.notification_workers
        )
        logger.debug("Notification dispatcher started with %d workers", config.notification_workers)
    return _DispatcherStore._instance  # type: ignore[reportPrivateUsage]


def set_dispatcher(dispatcher: NotificationDispatcher | None) -> None:
    """Replace the dispatcher, shutting down the previous one."""
    previous = _DispatcherStore._instance  # type: ignore[reportPrivateUsage]
    if previous is not None and previous is not dispatcher:
        previous.shutdown(wait=True)
    _DispatcherStore._instance = dispatcher  # type: ignore[reportPrivateUsage]


def build_services(
    session_factory: Callable[[], AbstractContextManager[Session]],
    config: ServerConfig | None = None,
    clock: Clock = utc_today,
) -> LibraryServices:
    """Assemble the lifecycle components around ``session_factory``."""
    return LibraryServices(session_factory, get_dispatcher(), config or get_config(), clock)
