"""Activity logging for catalog writes.

The activity log is an audit trail, not part of the write itself: a
failure to record an event is logged and never aborts the operation.
"""

from typing import Protocol

import structlog

from app.domain.base import DomainEvent

logger = structlog.get_logger()


class ActivityLogger(Protocol):
    """Sink for catalog activity events."""

    def record(self, event: DomainEvent) -> None:
        """Record one event."""
        ...


class StructlogActivityLogger:
    """Emit activity events as structured log lines."""

    def __init__(self, logger_name: str = "catalog.activity") -> None:
        self._logger = structlog.get_logger(logger_name)

    def record(self, event: DomainEvent) -> None:
        """Write the event to the activity log stream."""
        self._logger.info("Catalog activity", **event.to_dict())


def record_activity(activity_logger: ActivityLogger | None, event: DomainEvent) -> None:
    """Record an event without letting failures escape.

    Args:
        activity_logger: Target logger, ``None`` disables recording.
        event: Event to record.
    """
    if activity_logger is None:
        return
    try:
        activity_logger.record(event)
    except Exception as e:
        logger.warning(
            "Failed to record activity",
            event_type=event.event_type,
            aggregate_id=event.aggregate_id,
            error=str(e),
        )


# Global activity logger instance
_activity_logger: ActivityLogger | None = None


def get_activity_logger() -> ActivityLogger:
    """Get the activity logger singleton."""
    global _activity_logger
    if _activity_logger is None:
        _activity_logger = StructlogActivityLogger()
    return _activity_logger
