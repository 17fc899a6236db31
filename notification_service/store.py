"""Notification persistence boundary and its SQLAlchemy implementation."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import JSON, Boolean, Column, DateTime, String, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .errors import StorageError
from .models import NotificationPreferences, NotificationRequest

logger = logging.getLogger(__name__)


class NotificationStore(Protocol):
    """What the dispatch pipeline needs from the relational store."""

    async def insert(self, request: NotificationRequest) -> str:
        """Persist ``request`` and return its generated identifier."""
        ...

    async def lookup_preferences(self, user_id: str) -> NotificationPreferences:
        """Return the channel preferences for ``user_id``."""
        ...


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


class NotificationModel(Base):
    """Database representation of an accepted notification request."""

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(String(16), nullable=False)
    channel = Column(String(512), nullable=False)
    subject = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    template_id = Column(String(255), nullable=True)
    template_data = Column(JSON, nullable=False, default=dict)
    priority = Column(String(16), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)


class NotificationPreferenceModel(Base):
    """Per-user channel opt-ins."""

    __tablename__ = "notification_preferences"

    user_id = Column(String(255), primary_key=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    sms_enabled = Column(Boolean, nullable=False, default=True)
    push_enabled = Column(Boolean, nullable=False, default=True)


class SqlNotificationStore:
    """Store notifications through an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlNotificationStore":
        return cls(create_async_engine(database_url, pool_pre_ping=True))

    async def create_schema(self) -> None:
        """Ensure the notification tables exist."""

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Could not create notification tables: {e}") from e

    async def insert(self, request: NotificationRequest) -> str:
        notification_id = str(uuid.uuid4())
        model = NotificationModel(
            id=notification_id,
            user_id=request.user_id,
            type=request.type.value,
            channel=request.channel,
            subject=request.subject,
            message=request.message,
            template_id=request.template_id,
            template_data=dict(request.template_data),
            priority=request.priority.value,
            scheduled_at=request.scheduled_at,
            extra=dict(request.metadata),
            created_at=datetime.now(timezone.utc),
        )
        try:
            async with self._sessions() as session:
                session.add(model)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"❌ Failed to persist notification for user {request.user_id}: {e}")
            raise StorageError(f"Failed to persist notification: {e}") from e
        return notification_id

    async def get(self, notification_id: str) -> NotificationRequest | None:
        try:
            async with self._sessions() as session:
                model = await session.get(NotificationModel, notification_id)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Failed to load notification {notification_id}: {e}") from e
        if model is None:
            return None
        return self._to_request(model)

    async def lookup_preferences(self, user_id: str) -> NotificationPreferences:
        try:
            async with self._sessions() as session:
                model = await session.get(NotificationPreferenceModel, user_id)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Failed to load preferences for {user_id}: {e}") from e
        if model is None:
            return NotificationPreferences(user_id=user_id)
        return NotificationPreferences(
            user_id=model.user_id,
            email_enabled=model.email_enabled,
            sms_enabled=model.sms_enabled,
            push_enabled=model.push_enabled,
        )

    async def save_preferences(self, preferences: NotificationPreferences) -> None:
        try:
            async with self._sessions() as session:
                await session.merge(
                    NotificationPreferenceModel(
                        user_id=preferences.user_id,
                        email_enabled=preferences.email_enabled,
                        sms_enabled=preferences.sms_enabled,
                        push_enabled=preferences.push_enabled,
                    )
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Failed to save preferences for {preferences.user_id}: {e}") from e

    async def close(self) -> None:
        await self.engine.dispose()

    @staticmethod
    def _to_request(model: NotificationModel) -> NotificationRequest:
        return NotificationRequest(
            user_id=model.user_id,
            type=model.type,
            channel=model.channel,
            subject=model.subject,
            message=model.message,
            template_id=model.template_id,
            template_data=model.template_data or {},
            priority=model.priority,
            scheduled_at=model.scheduled_at,
            metadata=model.extra or {},
        )
