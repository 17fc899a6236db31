import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email

from .errors import ValidationError


class NotificationType(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationRequest(BaseModel):
    """A notification as accepted at the ingestion boundary.

    Field names are snake_case in Python and camelCase on the wire; both
    spellings are accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = Field(..., min_length=1)
    type: NotificationType
    channel: str = Field(..., min_length=1)
    subject: Optional[str] = None
    message: str = Field(..., min_length=1)
    template_id: Optional[str] = None
    template_data: Dict[str, Any] = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    scheduled_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("user_id", "channel", "message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value):
        # An explicit null means "not given"
        return NotificationPriority.MEDIUM if value is None else value

    @field_validator("template_data", "metadata", mode="before")
    @classmethod
    def _empty_mapping(cls, value):
        return {} if value is None else value

    @model_validator(mode="after")
    def _check_channel_address(self) -> "NotificationRequest":
        if self.type is NotificationType.EMAIL:
            validate_email(self.channel)
        return self

    @classmethod
    def parse(cls, data: Any) -> "NotificationRequest":
        """Validate ``data`` into a request, raising :class:`ValidationError`."""
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from e


class QueuedNotification(NotificationRequest):
    """A persisted request as carried in the queue envelope."""

    notification_id: str = Field(..., min_length=1)

    def to_request(self) -> NotificationRequest:
        return NotificationRequest.model_validate(
            self.model_dump(exclude={"notification_id"})
        )


class NotificationPreferences(BaseModel):
    """Per-user channel opt-ins, read by callers upstream of dispatch."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    email_enabled: bool = True
    sms_enabled: bool = True
    push_enabled: bool = True

    def allows(self, notification_type: NotificationType | str) -> bool:
        kind = NotificationType(notification_type)
        return getattr(self, f"{kind.value}_enabled")


def encode_envelope(notification_id: str, request: NotificationRequest) -> bytes:
    """Serialize a request plus its generated id into the JSON wire envelope."""
    payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)
    payload["notificationId"] = notification_id
    return json.dumps(payload).encode()


def decode_envelope(body: bytes | str) -> QueuedNotification:
    """Parse a wire envelope, raising :class:`ValidationError` if it is unusable."""
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError(f"Envelope is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValidationError("Envelope must be a JSON object")

    try:
        return QueuedNotification.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e)) from e


def _describe(error: PydanticValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "request"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)
