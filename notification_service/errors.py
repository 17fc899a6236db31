class NotificationError(Exception):
    """Base class for every error raised by the dispatch pipeline."""


class ValidationError(NotificationError):
    """A request or queued envelope is malformed or misses a required field."""


class StorageError(NotificationError):
    """The notification store is unreachable or rejected the write."""


class PublishError(NotificationError):
    """The broker rejected the publish after the record was persisted."""

    def __init__(self, message: str, notification_id: str | None = None):
        super().__init__(message)
        self.notification_id = notification_id


class ProviderError(NotificationError):
    """A delivery provider failed to hand a notification to its transport."""


class BrokerConnectionError(NotificationError):
    """The broker could not be reached; consumers must not start."""
