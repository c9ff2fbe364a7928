"""ORM models used by the application infrastructure."""

from .notification import NotificationModel
from .notification_preference import NotificationPreferenceModel
from .user import RoleModel, UserModel

__all__ = [
    "NotificationModel",
    "NotificationPreferenceModel",
    "RoleModel",
    "UserModel",
]
