"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from wealth_notify.domain.entities import (
    ChannelDeliveryStatus,
    EntityType,
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
)
from wealth_notify.infrastructure.models import NotificationModel
from wealth_notify.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


@dataclass
class NotificationFilter:
    """Optional criteria applied when listing a user's notifications."""

    unread_only: bool = False
    type: NotificationType | None = None
    priority: NotificationPriority | None = None
    entity_type: EntityType | None = None
    limit: int | None = None
    offset: int | None = None
    include_archived: bool = False


class NotificationRepository:
    """Provide CRUD and query operations for :class:`Notification` objects.

    Every lookup that touches a single row is scoped by owner so that a foreign
    row is indistinguishable from a missing one.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, notification: Notification) -> Notification:
        model = NotificationModel()
        self._apply_entity_to_model(model, notification)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def get_for_owner(self, notification_id: int, owner_id: int) -> Notification | None:
        model = self._get_owned_model(notification_id, owner_id)
        return self._to_entity(model) if model else None

    def list_for_user(
        self,
        owner_id: int,
        notification_filter: NotificationFilter | None = None,
        *,
        now: datetime | None = None,
        default_limit: int = 50,
    ) -> Sequence[Notification]:
        criteria = notification_filter or NotificationFilter()
        query = self._active_query(owner_id, now=now)
        if not criteria.include_archived:
            query = query.filter(NotificationModel.is_archived.is_(False))
        if criteria.unread_only:
            query = query.filter(NotificationModel.is_read.is_(False))
        if criteria.type is not None:
            query = query.filter(NotificationModel.notification_type == criteria.type.value)
        if criteria.priority is not None:
            query = query.filter(NotificationModel.priority == criteria.priority.value)
        if criteria.entity_type is not None:
            query = query.filter(NotificationModel.entity_type == criteria.entity_type.value)
        query = query.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        )
        if criteria.offset:
            query = query.offset(criteria.offset)
        query = query.limit(criteria.limit or default_limit)
        return [self._to_entity(model) for model in query.all()]

    def list_unread_for_user(
        self, user_id: int, *, limit: int | None = 50
    ) -> Sequence[Notification]:
        query = (
            self._active_query(user_id)
            .filter(NotificationModel.is_read.is_(False))
            .filter(NotificationModel.is_archived.is_(False))
            .order_by(
                NotificationModel.created_at.desc(), NotificationModel.id.desc()
            )
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def list_created_since(self, user_id: int, since: datetime) -> Sequence[Notification]:
        query = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.recipient_id == user_id)
            .filter(NotificationModel.created_at >= ensure_app_naive_datetime(since))
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
        )
        return [self._to_entity(model) for model in query.all()]

    def count_created_since(self, user_id: int, since: datetime) -> int:
        return (
            self.session.query(NotificationModel)
            .filter(NotificationModel.recipient_id == user_id)
            .filter(NotificationModel.created_at >= ensure_app_naive_datetime(since))
            .count()
        )

    def count_unread_by_type(self, owner_id: int, *, now: datetime | None = None) -> dict[str, int]:
        return self._count_unread_grouped(owner_id, NotificationModel.notification_type, now=now)

    def count_unread_by_priority(
        self, owner_id: int, *, now: datetime | None = None
    ) -> dict[str, int]:
        return self._count_unread_grouped(owner_id, NotificationModel.priority, now=now)

    def mark_as_read(
        self, notification_id: int, owner_id: int, *, read_at: datetime | None = None
    ) -> Notification | None:
        model = self._get_owned_model(notification_id, owner_id)
        if model is None:
            return None
        if not model.is_read:
            model.is_read = True
            model.read_at = ensure_app_naive_datetime(read_at or now_in_app_timezone())
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self._to_entity(model)

    def mark_many_as_read(self, notification_ids: Iterable[int], *, user_id: int) -> int:
        ids = [notification_id for notification_id in notification_ids if notification_id is not None]
        if not ids:
            return 0
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id.in_(ids),
                NotificationModel.recipient_id == user_id,
                NotificationModel.is_read.is_(False),
            )
            .update(
                {
                    NotificationModel.is_read: True,
                    NotificationModel.read_at: ensure_app_naive_datetime(
                        now_in_app_timezone()
                    ),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated

    def mark_all_as_read(self, owner_id: int, *, read_at: datetime | None = None) -> int:
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.recipient_id == owner_id,
                NotificationModel.is_read.is_(False),
                NotificationModel.is_archived.is_(False),
            )
            .update(
                {
                    NotificationModel.is_read: True,
                    NotificationModel.read_at: ensure_app_naive_datetime(
                        read_at or now_in_app_timezone()
                    ),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated

    def archive(
        self, notification_id: int, owner_id: int, *, archived_at: datetime | None = None
    ) -> bool:
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id == notification_id,
                NotificationModel.recipient_id == owner_id,
            )
            .update(
                {
                    NotificationModel.is_archived: True,
                    NotificationModel.archived_at: ensure_app_naive_datetime(
                        archived_at or now_in_app_timezone()
                    ),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated > 0

    def delete(self, notification_id: int, owner_id: int) -> bool:
        deleted = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id == notification_id,
                NotificationModel.recipient_id == owner_id,
            )
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted > 0

    def delete_expired(self, now: datetime) -> int:
        """Delete rows whose ``expires_at`` lies before ``now``; NULL never matches."""

        deleted = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.expires_at.is_not(None))
            .filter(NotificationModel.expires_at < ensure_app_naive_datetime(now))
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted

    def update_delivery_status(
        self,
        notification_id: int,
        statuses: Mapping[NotificationChannel, ChannelDeliveryStatus],
    ) -> Notification:
        model = self.session.get(NotificationModel, notification_id)
        if model is None:
            msg = f"Notification with id {notification_id} not found"
            raise ValueError(msg)
        merged = dict(model.delivery_status or {})
        for channel, status in statuses.items():
            merged[channel.value] = status.to_dict()
        model.delivery_status = merged
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def _active_query(self, owner_id: int, *, now: datetime | None = None) -> Query:
        reference = ensure_app_naive_datetime(now or now_in_app_timezone())
        return (
            self.session.query(NotificationModel)
            .filter(NotificationModel.recipient_id == owner_id)
            .filter(
                or_(
                    NotificationModel.expires_at.is_(None),
                    NotificationModel.expires_at > reference,
                )
            )
        )

    def _count_unread_grouped(
        self, owner_id: int, column, *, now: datetime | None = None
    ) -> dict[str, int]:
        query = (
            self._active_query(owner_id, now=now)
            .filter(NotificationModel.is_read.is_(False))
            .filter(NotificationModel.is_archived.is_(False))
            .with_entities(column, func.count(NotificationModel.id))
            .group_by(column)
        )
        return {value: count for value, count in query.all()}

    def _get_owned_model(self, notification_id: int, owner_id: int) -> NotificationModel | None:
        return (
            self.session.query(NotificationModel)
            .filter(NotificationModel.id == notification_id)
            .filter(NotificationModel.recipient_id == owner_id)
            .first()
        )

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        model.notification_type = notification.type.value
        model.title = notification.title
        model.message = notification.message
        model.priority = notification.priority.value
        model.recipient_id = notification.recipient_id
        model.entity_type = notification.entity_type.value if notification.entity_type else None
        model.entity_id = notification.entity_id
        model.entity_name = notification.entity_name
        model.action_url = notification.action_url
        model.action_label = notification.action_label
        model.is_read = notification.is_read
        model.read_at = ensure_app_naive_datetime(notification.read_at)
        model.is_archived = notification.is_archived
        model.archived_at = ensure_app_naive_datetime(notification.archived_at)
        model.channels_sent = [channel.value for channel in notification.channels_sent]
        model.delivery_status = {
            channel.value: status.to_dict()
            for channel, status in notification.delivery_status.items()
        }
        model.expires_at = ensure_app_naive_datetime(notification.expires_at)
        model.extra_metadata = dict(notification.metadata or {})
        model.created_by = notification.created_by
        model.created_at = ensure_app_naive_datetime(
            notification.created_at or now_in_app_timezone()
        )

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        delivery_status = {}
        for channel_value, status in (model.delivery_status or {}).items():
            try:
                channel = NotificationChannel(channel_value)
            except ValueError:
                continue
            delivery_status[channel] = ChannelDeliveryStatus.from_dict(status or {})
        return Notification(
            id=model.id,
            recipient_id=model.recipient_id,
            type=NotificationType(model.notification_type),
            title=model.title,
            message=model.message,
            priority=NotificationPriority(model.priority),
            entity_type=EntityType(model.entity_type) if model.entity_type else None,
            entity_id=model.entity_id,
            entity_name=model.entity_name,
            action_url=model.action_url,
            action_label=model.action_label,
            is_read=bool(model.is_read),
            read_at=ensure_app_timezone(model.read_at),
            is_archived=bool(model.is_archived),
            archived_at=ensure_app_timezone(model.archived_at),
            channels_sent=tuple(
                NotificationChannel(value) for value in (model.channels_sent or [])
            ),
            delivery_status=delivery_status,
            expires_at=ensure_app_timezone(model.expires_at),
            metadata=dict(model.extra_metadata or {}),
            created_by=model.created_by,
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["NotificationFilter", "NotificationRepository"]
