from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .models import NotificationType, QueuedNotification


@dataclass
class FormattedNotification:
    """What a provider actually delivers: addressed, rendered text."""

    notification_id: str
    type: NotificationType
    channel: str
    body: str
    subject: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def render_template(text: str, variables: Mapping[str, Any] | None) -> str:
    for key, value in (variables or {}).items():
        text = text.replace(f"{{{{{key}}}}}", str(value))
    return text


def format_notification(notification: QueuedNotification) -> FormattedNotification:
    """Substitute ``{{key}}`` placeholders in the message and subject."""
    data = notification.template_data
    subject = notification.subject
    if subject is not None:
        subject = render_template(subject, data)

    return FormattedNotification(
        notification_id=notification.notification_id,
        type=notification.type,
        channel=notification.channel,
        body=render_template(notification.message, data),
        subject=subject,
        metadata=dict(notification.metadata),
    )
