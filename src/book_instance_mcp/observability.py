"""Logfire observability for the Book Instance MCP Server.

Logfire carries the spans around lifecycle operations and is the error
sink for side effects that must never fail a request (reservation
sweeps and availability notifications). Plain ``logging`` output stays
the primary operator log; logfire adds structured context on top.
"""

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager

import logfire
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ObservabilityConfig(BaseModel):
    """Configuration for Logfire observability."""

    # Connection
    token: str = Field(default_factory=lambda: os.getenv("LOGFIRE_TOKEN", ""))
    project_name: str = "book-instance-mcp"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    # Behavior
    enabled: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_ENABLED", "true").lower() == "true"
    )
    console_output: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_CONSOLE", "false").lower() == "true"
    )
    send_to_logfire: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_SEND", "true").lower() == "true"
    )

    @property
    def should_send(self) -> bool:
        """Only ship telemetry when a write token is configured."""
        return self.send_to_logfire and bool(self.token)


_config: ObservabilityConfig | None = None


def initialize_observability(config: ObservabilityConfig | None = None) -> None:
    """Initialize Logfire with configuration."""
    global _config  # noqa: PLW0603
    _config = config or ObservabilityConfig()

    if not _config.enabled:
        logger.debug("Observability disabled via configuration")
        return

    logfire.configure(
        token=_config.token or None,
        service_name=_config.project_name,
        environment=_config.environment,
        send_to_logfire=_config.should_send,
        console=None if _config.console_output else False,
    )

    if _config.environment == "production":
        logfire.instrument_system_metrics()


def get_config() -> ObservabilityConfig:
    """Get current observability configuration."""
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ObservabilityConfig()
    return _config


# Library Business Metrics
instance_transitions = logfire.metric_counter(
    "library.instances.transitions", description="Executed book instance status transitions"
)

instances_swept = logfire.metric_counter(
    "library.instances.swept", description="Expired reservations reverted to available"
)

instances_available = logfire.metric_counter(
    "library.instances.available", description="Copies announced to the reservation queue"
)

notification_failures = logfire.metric_counter(
    "library.instances.notification_failures",
    description="Availability notifications that raised",
)


def record_transition(current: str, target: str) -> None:
    """Record an executed transition."""
    instance_transitions.add(1, {"from_status": current, "to_status": target})


def record_swept(count: int) -> None:
    """Record reverted reservations."""
    if count > 0:
        instances_swept.add(count)


def record_available(book_id: str) -> None:
    """Record a copy announced as available."""
    instances_available.add(1, {"book_id": book_id})


def report_side_effect_failure(operation: str, error: BaseException, **attributes) -> None:
    """Report a swallowed side-effect failure to the error sink.

    The caller has already logged the traceback; this only feeds the
    structured error channel.
    """
    if operation == "notification":
        notification_failures.add(1)
    logfire.error(
        "{operation} failed: {error_message}",
        operation=operation,
        error_type=type(error).__name__,
        error_message=str(error),
        **attributes,
    )


@contextmanager
def trace_lifecycle_operation(operation: str, **attributes) -> Generator:
    """Context manager for tracing lifecycle operations."""
    with logfire.span(f"lifecycle.{operation}", lifecycle_operation=operation, **attributes) as span:
        try:
            yield span
        except Exception as e:
            span.set_attribute("lifecycle.error", str(e))
            span.set_attribute("lifecycle.error_type", type(e).__name__)
            raise


__all__ = [
    "ObservabilityConfig",
    "get_config",
    "initialize_observability",
    "record_available",
    "record_swept",
    "record_transition",
    "report_side_effect_failure",
    "trace_lifecycle_operation",
]
