"""Repository implementations for infrastructure layer."""

from .notification_preference_repository import NotificationPreferenceRepository
from .notification_repository import NotificationFilter, NotificationRepository
from .user_repository import UserRepository

__all__ = [
    "NotificationFilter",
    "NotificationPreferenceRepository",
    "NotificationRepository",
    "UserRepository",
]
