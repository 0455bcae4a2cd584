"""
Book instance lifecycle core.

- transitions: the allowed ``(current, target)`` table and due-date arithmetic
- engine: validates and executes status transitions
- sweeper: reverts lapsed reservations
- notifications: fire-and-forget "copy became available" events
- provisioning: creates new Available copies
- catalog: read views and non-lifecycle edits
- services: wiring used by the MCP handlers
"""

from .catalog import InstanceCatalog
from .engine import InstanceLifecycleEngine
from .errors import (
    BadRequestError,
    ConflictError,
    DependencyFailureError,
    ForbiddenError,
    LifecycleError,
    NotFoundError,
)
from .notifications import (
    AvailabilityListener,
    NotificationDispatcher,
    ReservationQueueListener,
)
from .provisioning import InstanceProvisioner
from .services import LibraryServices, build_services, get_dispatcher, set_dispatcher
from .sweeper import ReservationSweeper
from .transitions import TRANSITION_TABLE, TransitionRule, compute_due_date, utc_today

__all__ = [
    "TRANSITION_TABLE",
    "AvailabilityListener",
    "BadRequestError",
    "ConflictError",
    "DependencyFailureError",
    "ForbiddenError",
    "InstanceCatalog",
    "InstanceLifecycleEngine",
    "InstanceProvisioner",
    "LibraryServices",
    "LifecycleError",
    "NotFoundError",
    "NotificationDispatcher",
    "ReservationQueueListener",
    "ReservationSweeper",
    "TransitionRule",
    "build_services",
    "compute_due_date",
    "get_dispatcher",
    "set_dispatcher",
    "utc_today",
]
