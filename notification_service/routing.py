"""Mapping of (channel type, priority) onto durable queue names and weights."""

from .models import NotificationPriority, NotificationType

QUEUE_PREFIX = "notifications"
URGENT_SUFFIX = "urgent"

PRIORITY_WEIGHTS = {
    NotificationPriority.URGENT: 10,
    NotificationPriority.HIGH: 7,
    NotificationPriority.MEDIUM: 5,
    NotificationPriority.LOW: 1,
}
DEFAULT_WEIGHT = 5


def _priority(value) -> NotificationPriority | None:
    try:
        return NotificationPriority(value)
    except ValueError:
        return None


def priority_weight(priority) -> int:
    """Numeric message priority; unknown or missing priorities weigh 5."""
    return PRIORITY_WEIGHTS.get(_priority(priority), DEFAULT_WEIGHT)


def route(notification_type, priority=None) -> str:
    """Queue name for a notification.

    Only ``urgent`` gets its own queue; low, medium and high share the base
    queue of their channel and are consumed in arrival order.
    """
    kind = NotificationType(notification_type)
    name = f"{QUEUE_PREFIX}.{kind.value}"
    if _priority(priority) is NotificationPriority.URGENT:
        name = f"{name}.{URGENT_SUFFIX}"
    return name


def queues_for(notification_type) -> tuple[str, str]:
    """The (base, urgent) queue pair a channel consumer binds to."""
    return (
        route(notification_type, NotificationPriority.MEDIUM),
        route(notification_type, NotificationPriority.URGENT),
    )


QUEUE_NAMES = tuple(name for kind in NotificationType for name in queues_for(kind))
