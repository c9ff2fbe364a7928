"""Persistence helpers for notification preference entities."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wealth_notify.domain.entities import (
    ChannelSettings,
    DigestSettings,
    NotificationPreference,
    NotificationType,
    QuietHours,
    TypeSetting,
)
from wealth_notify.infrastructure.models import NotificationPreferenceModel
from wealth_notify.utils import ensure_app_naive_datetime, ensure_app_timezone

logger = logging.getLogger(__name__)


class NotificationPreferenceRepository:
    """Provide get-or-create and update operations for user preferences."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_or_create(
        self,
        user_id: int,
        factory: Callable[[int], NotificationPreference],
    ) -> NotificationPreference:
        """Return the stored preference or insert the one built by ``factory``.

        Concurrent first-time callers race on the unique ``user_id`` constraint;
        the loser rolls back and reads the winner's row.
        """

        existing = self._get_model(user_id)
        if existing is not None:
            return self._to_entity(existing)

        model = NotificationPreferenceModel()
        self._apply_entity_to_model(model, factory(user_id))
        self.session.add(model)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.debug("Preference for user %s created concurrently; reusing it", user_id)
            existing = self._get_model(user_id)
            if existing is None:
                raise
            return self._to_entity(existing)
        self.session.refresh(model)
        return self._to_entity(model)

    def update(self, preference: NotificationPreference) -> NotificationPreference:
        model = self._get_model(preference.user_id)
        if model is None:
            msg = f"Notification preference for user {preference.user_id} not found"
            raise ValueError(msg)
        self._apply_entity_to_model(model, preference)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def list_with_digest_enabled(self) -> Sequence[NotificationPreference]:
        # Portable JSON predicates differ per backend; filter in Python.
        query = self.session.query(NotificationPreferenceModel).order_by(
            NotificationPreferenceModel.user_id
        )
        preferences = [self._to_entity(model) for model in query.all()]
        return [preference for preference in preferences if preference.digest_settings.enabled]

    def count_for_user(self, user_id: int) -> int:
        return (
            self.session.query(NotificationPreferenceModel)
            .filter(NotificationPreferenceModel.user_id == user_id)
            .count()
        )

    def _get_model(self, user_id: int) -> NotificationPreferenceModel | None:
        return (
            self.session.query(NotificationPreferenceModel)
            .filter(NotificationPreferenceModel.user_id == user_id)
            .first()
        )

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationPreferenceModel, preference: NotificationPreference
    ) -> None:
        model.user_id = preference.user_id
        model.channel_settings = preference.channel_settings.to_dict()
        model.type_settings = {
            notification_type.value: setting.to_dict()
            for notification_type, setting in preference.type_settings.items()
        }
        model.quiet_hours = preference.quiet_hours.to_dict()
        model.digest_settings = preference.digest_settings.to_dict()
        model.push_token = preference.push_token
        model.push_token_updated_at = ensure_app_naive_datetime(
            preference.push_token_updated_at
        )

    @staticmethod
    def _to_entity(model: NotificationPreferenceModel) -> NotificationPreference:
        type_settings: dict[NotificationType, TypeSetting] = {}
        for type_value, setting in (model.type_settings or {}).items():
            try:
                notification_type = NotificationType(type_value)
            except ValueError:
                continue
            type_settings[notification_type] = TypeSetting.from_dict(setting or {})
        return NotificationPreference(
            id=model.id,
            user_id=model.user_id,
            channel_settings=ChannelSettings.from_dict(model.channel_settings),
            type_settings=type_settings,
            quiet_hours=QuietHours.from_dict(model.quiet_hours),
            digest_settings=DigestSettings.from_dict(model.digest_settings),
            push_token=model.push_token,
            push_token_updated_at=ensure_app_timezone(model.push_token_updated_at),
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["NotificationPreferenceRepository"]
